"""
Registration domain service - Contact lifecycle entry point.

This module decides, for each signup submission, whether to create a new
contact, refresh a pending (or expired) one, or silently accept a
duplicate of a verified one.

Contact Lifecycle
=================

States:
- PENDING: email_verified = false, deleted_at IS NULL, token held
- VERIFIED: email_verified = true (terminal for this service)
- DELETED: deleted_at set by the expiry pass

Transitions driven here:
    (none)   -> PENDING  (first valid submission)
    PENDING  -> PENDING  (resubmission: token rotated, reminders reset)
    DELETED  -> PENDING  (resubmission after expiry: record revived)
    VERIFIED -> VERIFIED (resubmission: no write, no email)

Every submission that passes validation and the rate limiter gets the
same success response, whichever branch it took. Honeypot hits get it too
but touch nothing.

Note: races are resolved by the repository's conditional writes and the
unique dedup-key constraint, never by in-process locking.
"""

import logging
import uuid
from dataclasses import dataclass

from .dedup import derive_key
from .exceptions import ContactConflict, RateLimitExceeded, ValidationFailed
from .links import unsubscribe_link, verification_link
from .mailer import LifecycleMailer
from .models import ContactProfile, Submission
from .policy import RegistryPolicy
from .ports import Clock, ContactRepository, EmailTemplate, RegistrationOutcome
from .rate_limit import RateLimiter
from .validation import (
    CONTACT_PREFERENCE_CHOICES,
    DPC_STATUS_CHOICES,
    clean_optional,
    normalize_choice,
    normalize_email,
    validate,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistrationService:
    """
    Domain service for signup submissions.

    Orchestrates validation, rate limiting, dedup lookup, the contact
    write and the verification email.
    """

    repository: ContactRepository
    rate_limiter: RateLimiter
    mailer: LifecycleMailer
    clock: Clock
    policy: RegistryPolicy

    def register(self, submission: Submission, origin: str) -> RegistrationOutcome:
        """
        Register a signup submission.

        Args:
            submission: Raw form fields (untrusted)
            origin: Client IP used for rate limiting

        Returns:
            RegistrationOutcome describing which branch was taken

        Raises:
            ValidationFailed: If any field is malformed
            RateLimitExceeded: If ``origin`` is over the submission limit
        """
        report = validate(submission, self.policy)
        if report.is_bot:
            logger.info("Honeypot submission discarded from origin %s", origin)
            return RegistrationOutcome.DISCARDED_BOT
        if report.field_errors:
            raise ValidationFailed(report.field_errors)

        if not self.rate_limiter.check_and_record(origin):
            raise RateLimitExceeded(origin)

        profile = self._build_profile(submission)
        email_hash = derive_key(profile.email, self.policy.dedup_key_prefix)
        existing = self.repository.get_by_email_hash(email_hash)

        if existing is not None and existing.email_verified and existing.deleted_at is None:
            logger.info("Duplicate submission for verified contact %s", existing.id)
            return RegistrationOutcome.ALREADY_VERIFIED

        token = self._generate_verification_token()
        now = self.clock.now()

        if existing is None:
            try:
                contact = self.repository.insert_contact(profile, email_hash, token, now)
            except ContactConflict:
                logger.info("Concurrent insert resolved for dedup key %s", email_hash[:12])
                return RegistrationOutcome.CONFLICT_RESOLVED
            logger.info("Contact %s created", contact.id)
            outcome = RegistrationOutcome.CREATED
        else:
            if not self.repository.refresh_contact(existing.id, profile, token, now):
                logger.info("Contact %s verified concurrently; refresh skipped", existing.id)
                return RegistrationOutcome.CONFLICT_RESOLVED
            logger.info("Contact %s refreshed with rotated token", existing.id)
            outcome = RegistrationOutcome.REFRESHED

        self._send_verification_email(profile, token)
        return outcome

    def _build_profile(self, submission: Submission) -> ContactProfile:
        # validate() has already guaranteed email and zip_code are present
        contact_preference = normalize_choice(
            submission.contact_preference, CONTACT_PREFERENCE_CHOICES, "later"
        )
        return ContactProfile(
            email=normalize_email(submission.email or ""),
            zip_code=(submission.zip_code or "").strip(),
            first_name=clean_optional(submission.first_name),
            dpc_status=normalize_choice(submission.dpc_status, DPC_STATUS_CHOICES, "unsure"),
            contact_preference=contact_preference,
            email_consent=contact_preference == "yes",
            referral_source=clean_optional(submission.referral_source),
            utm_source=clean_optional(submission.utm_source),
            utm_medium=clean_optional(submission.utm_medium),
            utm_campaign=clean_optional(submission.utm_campaign),
        )

    def _send_verification_email(self, profile: ContactProfile, token: str) -> None:
        context = {
            "first_name": profile.first_name,
            "verify_url": verification_link(self.policy, token),
            "unsubscribe_url": unsubscribe_link(self.policy, profile.email),
        }
        self.mailer.send(EmailTemplate.VERIFICATION, profile.email, context)

    def _generate_verification_token(self) -> str:
        """
        Generate an unguessable verification token.

        uuid4 draws from os.urandom, giving 122 random bits.
        """
        return str(uuid.uuid4())
