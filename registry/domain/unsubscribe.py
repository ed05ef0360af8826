"""
Unsubscribe domain service - Withdraw consent to update emails.

Works on the opt-in record only, so it succeeds whether or not a contact
record still exists for the address.
"""

import logging
from dataclasses import dataclass

from .links import decode_unsubscribe_token
from .ports import Clock, OptInRepository, UnsubscribeResult
from .validation import EMAIL_PATTERN, normalize_email

logger = logging.getLogger(__name__)


@dataclass
class UnsubscribeService:
    """Deactivates opt-in records from unsubscribe links."""

    opt_ins: OptInRepository
    clock: Clock

    def unsubscribe(self, token: str | None) -> UnsubscribeResult:
        """
        Deactivate the opt-in record addressed by ``token``.

        Idempotent: an unknown or already-inactive address still yields
        SUCCESS. Storage failures yield ERROR and are logged.
        """
        if not token:
            return UnsubscribeResult.INVALID

        email = decode_unsubscribe_token(token)
        if email is None:
            return UnsubscribeResult.INVALID
        normalized = normalize_email(email)
        if not EMAIL_PATTERN.match(normalized):
            return UnsubscribeResult.INVALID

        try:
            touched = self.opt_ins.deactivate(normalized, self.clock.now())
        except Exception:
            logger.exception("Unsubscribe failed")
            return UnsubscribeResult.ERROR

        logger.info("Unsubscribe processed (%d record(s) updated)", touched)
        return UnsubscribeResult.SUCCESS
