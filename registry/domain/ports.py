"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the closed result enums the domain services
hand back to the HTTP boundary. Adapters implement these protocols.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from .models import (
    Contact,
    ContactProfile,
    EmailMessage,
    OptInRecord,
    ReminderStage,
    RenderedEmail,
    SendResult,
)


class RegistrationOutcome(Enum):
    """
    How a registration submission was resolved.

    Every outcome is reported to the submitter as the same success
    response so that duplicates and bots are indistinguishable from a
    fresh signup.
    """

    CREATED = "created"
    REFRESHED = "refreshed"
    ALREADY_VERIFIED = "already_verified"
    CONFLICT_RESOLVED = "conflict_resolved"
    DISCARDED_BOT = "discarded_bot"


class VerifyResult(Enum):
    """
    Result of a verification link click.

    Terminal statuses; NOT_FOUND deliberately covers never-issued,
    consumed and rotated tokens alike.
    """

    SUCCESS = "success"
    ALREADY_VERIFIED = "already_verified"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


class UnsubscribeResult(Enum):
    """Result of an unsubscribe link click."""

    SUCCESS = "success"
    INVALID = "invalid"
    ERROR = "error"


class EmailTemplate(str, Enum):
    """Transactional templates the lifecycle sends."""

    VERIFICATION = "verification"
    WELCOME = "welcome"
    REMINDER_24H = "reminder_24h"
    REMINDER_72H = "reminder_72h"
    REMINDER_FINAL = "reminder_final"

    @classmethod
    def for_stage(cls, stage: ReminderStage) -> "EmailTemplate":
        return {
            ReminderStage.FIRST: cls.REMINDER_24H,
            ReminderStage.SECOND: cls.REMINDER_72H,
            ReminderStage.FINAL: cls.REMINDER_FINAL,
        }[stage]


class Clock(Protocol):
    """Port interface for wall-clock time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class ContactRepository(Protocol):
    """
    Port interface for contact persistence.

    Every mutating method is a single conditional write; a False return
    means the guard did not match (another request won a race).
    """

    def get_by_email_hash(self, email_hash: str) -> Contact | None:
        """Look up a contact (deleted or not) by dedup key."""
        ...

    def get_by_token(self, token: str) -> Contact | None:
        """Look up the contact currently holding a verification token."""
        ...

    def insert_contact(
        self, profile: ContactProfile, email_hash: str, token: str, now: datetime
    ) -> Contact:
        """
        Insert a new pending contact.

        Raises:
            ContactConflict: If the dedup key is already taken
        """
        ...

    def refresh_contact(
        self, contact_id: UUID, profile: ContactProfile, token: str, now: datetime
    ) -> bool:
        """
        Overwrite profile, rotate token and restart the reminder cycle.

        Guarded by ``email_verified = false``; clears deletion markers.
        """
        ...

    def consume_token(self, token: str, now: datetime) -> bool:
        """
        Mark the pending holder of ``token`` verified and destroy the token.

        Guarded by the token still being held by a pending contact.
        """
        ...

    def list_pending(self, issued_before: datetime) -> list[Contact]:
        """List pending contacts whose token was issued at or before a time."""
        ...

    def record_reminder(
        self,
        contact_id: UUID,
        stage: ReminderStage,
        sent_at: datetime,
        message_id: str | None,
    ) -> bool:
        """
        Advance reminder_count to ``stage.number`` and append a log entry.

        Both happen in one transaction, guarded by the contact still being
        pending with ``reminder_count = stage.number - 1``.
        """
        ...

    def expire_contact(self, contact_id: UUID, now: datetime, reason: str) -> bool:
        """
        Soft-delete a pending contact and append a deletion log entry.

        Guarded by the contact still being pending.
        """
        ...


class RateLimitRepository(Protocol):
    """Port interface for append-only rate limit events."""

    def count_since(self, origin: str, since: datetime) -> int:
        """Count events for ``origin`` with ``created_at >= since``."""
        ...

    def record(self, origin: str, at: datetime) -> None:
        """Append one event."""
        ...


class OptInRepository(Protocol):
    """Port interface for update opt-in records."""

    def activate_if_absent(self, record: OptInRecord, now: datetime) -> bool:
        """Insert the record unless one exists for the normalized email."""
        ...

    def deactivate(self, email_normalized: str, now: datetime) -> int:
        """Set is_active = false; returns the number of rows touched."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send(self, message: EmailMessage) -> SendResult:
        """
        Deliver a rendered message.

        Implementations report transport failures through
        ``SendResult.success`` rather than raising.
        """
        ...


class TemplateRenderer(Protocol):
    """Port interface for transactional email rendering."""

    def render(self, template: EmailTemplate, context: dict[str, Any]) -> RenderedEmail:
        """Render subject, HTML and text bodies for a template."""
        ...
