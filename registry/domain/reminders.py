"""
Reminder and expiry scheduler - Periodic escalation for pending contacts.

Two passes per run:

1. Reminder pass: each pending contact whose next stage offset has
   elapsed gets that stage's email. reminder_count advances only after
   a successful send, in the same transaction as the log entry, and only
   from ``stage - 1``; a re-run never re-sends a stage already counted.
2. Expiry pass: pending contacts that have had the final reminder and
   are past the hard deadline are soft-deleted.

Stage ages are measured from when the current token was issued, so a
resubmission restarts the cycle along with the reset reminder_count.
"""

import logging
from dataclasses import dataclass, field

from .links import unsubscribe_link, verification_link
from .mailer import LifecycleMailer
from .models import MAX_REMINDER_COUNT, Contact, DeletionReason, ReminderStage
from .policy import RegistryPolicy
from .ports import Clock, ContactRepository, EmailTemplate

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Outcome of one scheduler run."""

    reminders_sent: int = 0
    deletions: int = 0
    errors: list[str] = field(default_factory=list)
    success: bool = True

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "reminders_sent": self.reminders_sent,
            "deletions": self.deletions,
            "errors": list(self.errors),
        }


@dataclass
class ReminderScheduler:
    """Runs the reminder and expiry passes."""

    repository: ContactRepository
    mailer: LifecycleMailer
    clock: Clock
    policy: RegistryPolicy

    def run(self) -> RunSummary:
        summary = RunSummary()
        self.send_reminders(summary)
        self.expire_unverified(summary)
        logger.info(
            "Reminder job completed: reminders_sent=%d deletions=%d errors=%d",
            summary.reminders_sent,
            summary.deletions,
            len(summary.errors),
        )
        return summary

    def due_stage(self, contact: Contact) -> ReminderStage | None:
        """Return the next reminder stage if its offset has elapsed."""
        if not contact.is_pending or contact.reminder_count >= MAX_REMINDER_COUNT:
            return None
        stage = ReminderStage.for_number(contact.reminder_count + 1)
        issued_at = contact.issued_at
        if stage is None or issued_at is None:
            return None
        offset = self.policy.reminder_offsets[stage.number - 1]
        if self.clock.now() - issued_at < offset:
            return None
        return stage

    def is_expired(self, contact: Contact) -> bool:
        """
        Final reminder sent and the hard deadline has passed.

        The final reminder also gets its own grace period (deadline minus
        final offset) so a late-running job never mails "expires tomorrow"
        and deletes in the same run.
        """
        issued_at = contact.issued_at
        if not contact.is_pending or contact.reminder_count < MAX_REMINDER_COUNT:
            return False
        if issued_at is None:
            return False
        now = self.clock.now()
        if now - issued_at <= self.policy.deletion_deadline:
            return False
        grace = self.policy.deletion_deadline - self.policy.reminder_offsets[-1]
        last_sent = contact.last_reminder_sent_at
        return last_sent is None or now - last_sent >= grace

    def send_reminders(self, summary: RunSummary) -> None:
        earliest_offset = min(self.policy.reminder_offsets)
        try:
            candidates = self.repository.list_pending(self.clock.now() - earliest_offset)
        except Exception as e:
            logger.exception("Failed to list contacts needing reminders")
            summary.errors.append(f"Query error: {e}")
            return

        for contact in candidates:
            stage = self.due_stage(contact)
            if stage is None or contact.verification_token is None:
                continue
            try:
                if self._send_stage(contact, stage):
                    summary.reminders_sent += 1
                else:
                    summary.errors.append(f"Reminder failed for {contact.id}")
            except Exception:
                logger.exception("Failed to send reminder to %s", contact.id)
                summary.errors.append(f"Reminder failed for {contact.id}")

    def expire_unverified(self, summary: RunSummary) -> None:
        try:
            candidates = self.repository.list_pending(
                self.clock.now() - self.policy.deletion_deadline
            )
        except Exception as e:
            logger.exception("Failed to list contacts for deletion")
            summary.errors.append(f"Deletion query error: {e}")
            return

        for contact in candidates:
            if not self.is_expired(contact):
                continue
            try:
                deleted = self.repository.expire_contact(
                    contact.id, self.clock.now(), DeletionReason.VERIFICATION_EXPIRED.value
                )
            except Exception:
                logger.exception("Failed to delete %s", contact.id)
                summary.errors.append(f"Deletion failed for {contact.id}")
                continue
            if deleted:
                logger.info("Contact %s deleted after verification expired", contact.id)
                summary.deletions += 1

    def _send_stage(self, contact: Contact, stage: ReminderStage) -> bool:
        """Send one reminder; True if sent (whether or not this run recorded it)."""
        unsubscribe_url = unsubscribe_link(self.policy, contact.email)
        context = {
            "first_name": contact.first_name,
            "verify_url": verification_link(self.policy, contact.verification_token or ""),
            "unsubscribe_url": unsubscribe_url,
        }
        headers = {
            "List-Unsubscribe": f"<{unsubscribe_url}>",
            "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
        }
        result = self.mailer.send(
            EmailTemplate.for_stage(stage), contact.email, context, headers=headers
        )
        if not result.success:
            return False

        recorded = self.repository.record_reminder(
            contact.id, stage, self.clock.now(), result.message_id
        )
        if recorded:
            logger.info("Reminder %s sent to contact %s", stage.value, contact.id)
        else:
            logger.warning(
                "Reminder %s for contact %s sent but not recorded; contact changed mid-run",
                stage.value,
                contact.id,
            )
        return True
