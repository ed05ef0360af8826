"""
Domain models - Contact lifecycle records and value objects.

Plain dataclasses shared between the domain services and the adapters.
No framework imports.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class DeletionReason(str, Enum):
    """Why a contact was soft-deleted."""

    VERIFICATION_EXPIRED = "verification_expired"


class ReminderStage(Enum):
    """
    Escalating reminder stages for pending contacts.

    The value is the wire/log name; ``number`` is the reminder_count a
    contact holds once the stage has been sent.
    """

    FIRST = "24h"
    SECOND = "72h"
    FINAL = "final"

    @property
    def number(self) -> int:
        return _STAGE_NUMBERS[self]

    @classmethod
    def for_number(cls, number: int) -> "ReminderStage | None":
        for stage, stage_number in _STAGE_NUMBERS.items():
            if stage_number == number:
                return stage
        return None


_STAGE_NUMBERS = {
    ReminderStage.FIRST: 1,
    ReminderStage.SECOND: 2,
    ReminderStage.FINAL: 3,
}

MAX_REMINDER_COUNT = len(_STAGE_NUMBERS)

# Reminder log type written by the expiry pass
DELETION_LOG_TYPE = "deletion"


@dataclass
class Submission:
    """Raw signup form submission, as received from the client."""

    email: str | None = None
    zip_code: str | None = None
    first_name: str | None = None
    dpc_status: str | None = None
    contact_preference: str | None = None
    referral_source: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    website: str | None = None  # honeypot


@dataclass
class ContactProfile:
    """Normalized profile fields written on insert and refresh."""

    email: str
    zip_code: str
    first_name: str | None
    dpc_status: str
    contact_preference: str
    email_consent: bool
    referral_source: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None


@dataclass
class Contact:
    """One registry entrant."""

    id: UUID
    email: str
    email_hash: str
    zip_code: str
    first_name: str | None = None
    dpc_status: str = "unsure"
    contact_preference: str = "later"
    referral_source: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    email_verified: bool = False
    verified_at: datetime | None = None
    verification_token: str | None = None
    verification_sent_at: datetime | None = None
    reminder_count: int = 0
    last_reminder_sent_at: datetime | None = None
    deleted_at: datetime | None = None
    deletion_reason: str | None = None
    email_consent: bool = False
    email_consent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return not self.email_verified and self.deleted_at is None

    @property
    def issued_at(self) -> datetime | None:
        """When the current verification token was mailed (or created)."""
        return self.verification_sent_at or self.created_at

    @property
    def freshness_anchor(self) -> datetime | None:
        """Most recent time a working verification link was mailed."""
        candidates = [t for t in (self.issued_at, self.last_reminder_sent_at) if t is not None]
        return max(candidates) if candidates else None


@dataclass
class OptInRecord:
    """Consent to receive non-transactional updates, keyed by email."""

    email: str
    email_normalized: str
    is_active: bool = True
    verified_at: datetime | None = None
    source: str = "registration_flow"
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class EmailMessage:
    """Fully rendered outbound email."""

    to: str
    subject: str
    html: str
    text: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    """Outcome of an email send attempt."""

    success: bool
    message_id: str | None = None


@dataclass
class RenderedEmail:
    """Subject and bodies produced by a template renderer."""

    subject: str
    html: str
    text: str
