"""
Verification domain service - Double-opt-in confirmation.

A token is live exactly while a pending contact holds it. Consuming it
is one conditional write keyed on the presented value, so two concurrent
clicks cannot both succeed (and cannot both send a welcome email).
"""

import logging
import re
from dataclasses import dataclass

from .links import unsubscribe_link
from .mailer import LifecycleMailer
from .models import OptInRecord
from .policy import RegistryPolicy
from .ports import (
    Clock,
    ContactRepository,
    EmailTemplate,
    OptInRepository,
    VerifyResult,
)

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


@dataclass(frozen=True)
class VerificationOutcome:
    """Verification status plus the first name for the status page."""

    result: VerifyResult
    first_name: str | None = None


@dataclass
class VerificationService:
    """Consumes verification tokens and records consent."""

    repository: ContactRepository
    opt_ins: OptInRepository
    mailer: LifecycleMailer
    clock: Clock
    policy: RegistryPolicy

    def verify(
        self,
        token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerificationOutcome:
        """
        Verify the contact holding ``token``.

        Status checks, in order:
        1. INVALID: token missing or not UUID-shaped (no datastore hit)
        2. NOT_FOUND: no contact holds the token
        3. ALREADY_VERIFIED: holder already verified
        4. EXPIRED: holder deleted, or link older than the expiry window
        5. SUCCESS: token consumed; opt-in upserted; welcome email sent

        Args:
            token: Token from the verification link
            ip_address: Client IP, stored on a newly created opt-in record
            user_agent: Client user agent, stored likewise

        Returns:
            VerificationOutcome with the status and, when known, first name
        """
        if not token or not TOKEN_PATTERN.match(token.strip()):
            return VerificationOutcome(VerifyResult.INVALID)
        token = token.strip().lower()

        contact = self.repository.get_by_token(token)
        if contact is None:
            return VerificationOutcome(VerifyResult.NOT_FOUND)

        if contact.email_verified:
            return VerificationOutcome(VerifyResult.ALREADY_VERIFIED, contact.first_name)

        now = self.clock.now()
        if contact.deleted_at is not None:
            return VerificationOutcome(VerifyResult.EXPIRED)
        anchor = contact.freshness_anchor
        if anchor is not None and now - anchor > self.policy.verification_expiry:
            logger.info("Verification link expired for contact %s", contact.id)
            return VerificationOutcome(VerifyResult.EXPIRED)

        if not self.repository.consume_token(token, now):
            # Another request consumed or rotated the token between our read and write
            return VerificationOutcome(VerifyResult.NOT_FOUND)
        logger.info("Contact %s verified", contact.id)

        self._record_opt_in(contact.email, ip_address, user_agent)
        self._send_welcome_email(contact.email, contact.first_name)
        return VerificationOutcome(VerifyResult.SUCCESS, contact.first_name)

    def _record_opt_in(
        self, email: str, ip_address: str | None, user_agent: str | None
    ) -> None:
        record = OptInRecord(
            email=email,
            email_normalized=email.strip().lower(),
            verified_at=self.clock.now(),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            self.opt_ins.activate_if_absent(record, self.clock.now())
        except Exception:
            # Verification already committed; consent bookkeeping is secondary
            logger.exception("Failed to record opt-in after verification")

    def _send_welcome_email(self, email: str, first_name: str | None) -> None:
        context = {
            "first_name": first_name,
            "unsubscribe_url": unsubscribe_link(self.policy, email),
        }
        self.mailer.send(EmailTemplate.WELCOME, email, context)
