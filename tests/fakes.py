"""
In-memory port implementations for unit tests.

Each fake honours the same conditional-write guards as the PostgreSQL
adapters, so lifecycle properties can be asserted without a database.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from registry.domain.exceptions import ContactConflict
from registry.domain.models import (
    DELETION_LOG_TYPE,
    Contact,
    ContactProfile,
    EmailMessage,
    OptInRecord,
    ReminderStage,
    RenderedEmail,
    SendResult,
    Submission,
)
from registry.domain.ports import EmailTemplate


@dataclass
class ReminderLogEntry:
    """Row of the reminder audit log as the fake records it."""

    contact_id: UUID
    reminder_type: str
    sent_at: datetime
    email_provider_id: str | None = None


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class InMemoryContactRepository:
    """ContactRepository fake backed by a dict keyed on contact id."""

    def __init__(self) -> None:
        self.contacts: dict[UUID, Contact] = {}
        self.reminder_log: list[ReminderLogEntry] = []
        self.writes = 0
        # Simulates a concurrent insert winning the unique constraint
        self.conflict_on_insert = False

    def get_by_email_hash(self, email_hash: str) -> Contact | None:
        for contact in self.contacts.values():
            if contact.email_hash == email_hash:
                return replace(contact)
        return None

    def get_by_token(self, token: str) -> Contact | None:
        for contact in self.contacts.values():
            if contact.verification_token is not None and contact.verification_token == token:
                return replace(contact)
        return None

    def insert_contact(
        self, profile: ContactProfile, email_hash: str, token: str, now: datetime
    ) -> Contact:
        if self.conflict_on_insert or any(
            c.email_hash == email_hash for c in self.contacts.values()
        ):
            raise ContactConflict(email_hash)
        contact = Contact(
            id=uuid.uuid4(),
            email_hash=email_hash,
            verification_token=token,
            verification_sent_at=now,
            email_consent_at=now if profile.email_consent else None,
            created_at=now,
            updated_at=now,
            **self._profile_fields(profile),
        )
        self.contacts[contact.id] = contact
        self.writes += 1
        return replace(contact)

    def refresh_contact(
        self, contact_id: UUID, profile: ContactProfile, token: str, now: datetime
    ) -> bool:
        contact = self.contacts.get(contact_id)
        if contact is None or contact.email_verified:
            return False
        self.contacts[contact_id] = replace(
            contact,
            verification_token=token,
            verification_sent_at=now,
            reminder_count=0,
            last_reminder_sent_at=None,
            deleted_at=None,
            deletion_reason=None,
            email_consent_at=now if profile.email_consent else None,
            updated_at=now,
            **self._profile_fields(profile),
        )
        self.writes += 1
        return True

    def consume_token(self, token: str, now: datetime) -> bool:
        for contact_id, contact in self.contacts.items():
            if contact.verification_token == token and contact.is_pending:
                self.contacts[contact_id] = replace(
                    contact,
                    email_verified=True,
                    verified_at=now,
                    verification_token=None,
                    updated_at=now,
                )
                self.writes += 1
                return True
        return False

    def list_pending(self, issued_before: datetime) -> list[Contact]:
        return [
            replace(c)
            for c in sorted(self.contacts.values(), key=lambda c: c.created_at)
            if c.is_pending and c.issued_at is not None and c.issued_at <= issued_before
        ]

    def record_reminder(
        self,
        contact_id: UUID,
        stage: ReminderStage,
        sent_at: datetime,
        message_id: str | None,
    ) -> bool:
        contact = self.contacts.get(contact_id)
        if (
            contact is None
            or not contact.is_pending
            or contact.reminder_count != stage.number - 1
        ):
            return False
        self.contacts[contact_id] = replace(
            contact,
            reminder_count=stage.number,
            last_reminder_sent_at=sent_at,
            updated_at=sent_at,
        )
        self.reminder_log.append(ReminderLogEntry(contact_id, stage.value, sent_at, message_id))
        self.writes += 1
        return True

    def expire_contact(self, contact_id: UUID, now: datetime, reason: str) -> bool:
        contact = self.contacts.get(contact_id)
        if contact is None or not contact.is_pending:
            return False
        self.contacts[contact_id] = replace(
            contact,
            deleted_at=now,
            deletion_reason=reason,
            verification_token=None,
            updated_at=now,
        )
        self.reminder_log.append(ReminderLogEntry(contact_id, DELETION_LOG_TYPE, now))
        self.writes += 1
        return True

    def only(self) -> Contact:
        """Return the single stored contact."""
        assert len(self.contacts) == 1, f"expected one contact, found {len(self.contacts)}"
        return next(iter(self.contacts.values()))

    def _profile_fields(self, profile: ContactProfile) -> dict[str, Any]:
        return {
            "email": profile.email,
            "zip_code": profile.zip_code,
            "first_name": profile.first_name,
            "dpc_status": profile.dpc_status,
            "contact_preference": profile.contact_preference,
            "email_consent": profile.email_consent,
            "referral_source": profile.referral_source,
            "utm_source": profile.utm_source,
            "utm_medium": profile.utm_medium,
            "utm_campaign": profile.utm_campaign,
        }


class InMemoryRateLimitRepository:
    def __init__(self) -> None:
        self.events: list[tuple[str, datetime]] = []

    def count_since(self, origin: str, since: datetime) -> int:
        return sum(1 for o, at in self.events if o == origin and at >= since)

    def record(self, origin: str, at: datetime) -> None:
        self.events.append((origin, at))


class InMemoryOptInRepository:
    def __init__(self) -> None:
        self.records: dict[str, OptInRecord] = {}

    def activate_if_absent(self, record: OptInRecord, now: datetime) -> bool:
        if record.email_normalized in self.records:
            return False
        self.records[record.email_normalized] = replace(record)
        return True

    def deactivate(self, email_normalized: str, now: datetime) -> int:
        record = self.records.get(email_normalized)
        if record is None:
            return 0
        record.is_active = False
        return 1


class RecordingEmailSender:
    """EmailSender fake that keeps every message; can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False
        self.raise_error = False

    def send(self, message: EmailMessage) -> SendResult:
        if self.raise_error:
            raise ConnectionError("transport down")
        if self.fail:
            return SendResult(success=False)
        self.sent.append(message)
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")


class StubRenderer:
    """TemplateRenderer fake exposing the template name and context in the output."""

    def render(self, template: EmailTemplate, context: dict[str, Any]) -> RenderedEmail:
        return RenderedEmail(
            subject=template.value,
            html=repr(sorted(context.items(), key=lambda kv: kv[0])),
            text="\n".join(f"{k}={v}" for k, v in sorted(context.items())),
        )


def make_submission(email: str = "user@example.com", **overrides: str | None) -> Submission:
    """Build a valid submission, overriding any field."""
    fields: dict[str, str | None] = {"email": email, "zip_code": "02139"}
    fields.update(overrides)
    return Submission(**fields)
