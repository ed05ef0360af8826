"""
Submission validation - Pure field checks and normalization.

The same rules run in the browser for UX; server-side results are the
only ones trusted. Nothing here touches storage or the network.
"""

import re
from dataclasses import dataclass, field

from .models import Submission
from .policy import RegistryPolicy

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DPC_STATUS_CHOICES = ("yes", "no")
CONTACT_PREFERENCE_CHOICES = ("yes", "no")


@dataclass
class ValidationReport:
    """Result of validating one submission."""

    field_errors: dict[str, str] = field(default_factory=dict)
    is_bot: bool = False

    @property
    def valid(self) -> bool:
        return not self.field_errors and not self.is_bot


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def validate_email(email: str | None, policy: RegistryPolicy) -> str | None:
    """Return a user-safe error message, or None if the email is acceptable."""
    if not email or not email.strip():
        return "Email is required"
    normalized = normalize_email(email)
    if len(normalized) > policy.email_max_length:
        return "Email is too long"
    if not EMAIL_PATTERN.match(normalized):
        return "Invalid email format"
    if is_disposable(normalized, policy):
        return "Please use a permanent email address"
    return None


def validate_postal_code(zip_code: str | None, policy: RegistryPolicy) -> str | None:
    """Return a user-safe error message, or None if the postal code is acceptable."""
    if not zip_code or not zip_code.strip():
        return "ZIP code is required"
    # re.ASCII keeps \d from matching non-ASCII digits
    if not re.match(policy.postal_code_pattern, zip_code.strip(), re.ASCII):
        return "ZIP code must be 5 digits"
    return None


def is_disposable(normalized_email: str, policy: RegistryPolicy) -> bool:
    domain = normalized_email.rpartition("@")[2]
    return domain in policy.disposable_domains


def is_honeypot_filled(submission: Submission) -> bool:
    return bool(submission.website)


def validate(submission: Submission, policy: RegistryPolicy) -> ValidationReport:
    """
    Validate a signup submission.

    A filled honeypot short-circuits: the report is marked as a bot and
    field errors are not computed, since bots get a fabricated success.
    """
    if is_honeypot_filled(submission):
        return ValidationReport(is_bot=True)

    errors: dict[str, str] = {}
    email_error = validate_email(submission.email, policy)
    if email_error:
        errors["email"] = email_error
    zip_error = validate_postal_code(submission.zip_code, policy)
    if zip_error:
        errors["zipCode"] = zip_error
    return ValidationReport(field_errors=errors)


def normalize_choice(value: str | None, allowed: tuple[str, ...], fallback: str) -> str:
    """
    Map a free-form categorical answer onto a closed set.

    Exact (case-insensitive) matches win; hedging phrases map to
    ``unsure`` / ``later``; anything else becomes ``fallback``.
    """
    if not value:
        return fallback
    lower = value.strip().lower()
    if lower in allowed:
        return lower
    if "not sure" in lower or "unsure" in lower:
        return "unsure"
    if "later" in lower or "maybe" in lower:
        return "later"
    return fallback


def clean_optional(value: str | None) -> str | None:
    """Strip a free-text field, mapping blank to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
