"""
Registry policy - Explicit thresholds, windows and deny-lists.

Built from application settings at startup and passed into each domain
service, so the domain never reads configuration ambiently.
"""

from dataclasses import dataclass, field
from datetime import timedelta

DEFAULT_DISPOSABLE_DOMAINS = frozenset(
    {
        "tempmail.com",
        "throwaway.com",
        "mailinator.com",
        "10minutemail.com",
        "guerrillamail.com",
        "sharklasers.com",
        "yopmail.com",
        "maildrop.cc",
    }
)


@dataclass(frozen=True)
class RegistryPolicy:
    """
    Lifecycle configuration with documented defaults.

    - 5 submissions per origin per hour
    - verification links fresh for 24 hours after the latest mailing
    - reminders at 24h, 72h and 144h (6 days) after the token was issued
    - unverified contacts deleted 168 hours (7 days) after issue, once the
      final reminder has gone out
    """

    rate_limit_max_attempts: int = 5
    rate_limit_window: timedelta = timedelta(hours=1)
    verification_expiry: timedelta = timedelta(hours=24)
    reminder_offsets: tuple[timedelta, timedelta, timedelta] = (
        timedelta(hours=24),
        timedelta(hours=72),
        timedelta(hours=144),
    )
    deletion_deadline: timedelta = timedelta(hours=168)
    email_max_length: int = 254
    postal_code_pattern: str = r"^\d{5}$"
    disposable_domains: frozenset[str] = field(default=DEFAULT_DISPOSABLE_DOMAINS)
    dedup_key_prefix: str = "registry:"
    verify_url: str = "http://localhost:8000/v1/verify-email"
    unsubscribe_url: str = "http://localhost:8000/v1/unsubscribe"
