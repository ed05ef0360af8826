"""
Unit tests for VerificationService.

Covers every terminal status, single-use tokens, the freshness window,
opt-in bookkeeping and best-effort welcome email.
"""

from unittest.mock import Mock

from registry.domain.links import encode_unsubscribe_token
from registry.domain.models import OptInRecord
from registry.domain.ports import EmailTemplate, VerifyResult
from registry.domain.registration import RegistrationService
from registry.domain.verification import VerificationService
from tests.fakes import (
    FrozenClock,
    InMemoryContactRepository,
    InMemoryOptInRepository,
    RecordingEmailSender,
    make_submission,
)


def register_one(registration: RegistrationService, contacts: InMemoryContactRepository, **fields) -> str:
    registration.register(make_submission(**fields), "10.0.0.1")
    return contacts.only().verification_token


class TestStatuses:
    """Tests for each VerifyResult value."""

    def test_missing_token_is_invalid(self, verification: VerificationService) -> None:
        assert verification.verify(None).result == VerifyResult.INVALID
        assert verification.verify("").result == VerifyResult.INVALID

    def test_malformed_token_is_invalid_without_lookup(
        self, opt_ins, mailer, clock, policy
    ) -> None:
        """Structural check runs before any datastore access."""
        repo = Mock()
        service = VerificationService(
            repository=repo, opt_ins=opt_ins, mailer=mailer, clock=clock, policy=policy
        )

        assert service.verify("not-a-uuid").result == VerifyResult.INVALID
        assert service.verify("' OR 1=1 --").result == VerifyResult.INVALID
        repo.get_by_token.assert_not_called()

    def test_unknown_token_is_not_found(self, verification: VerificationService) -> None:
        outcome = verification.verify("123e4567-e89b-42d3-a456-426614174000")
        assert outcome.result == VerifyResult.NOT_FOUND

    def test_success_returns_first_name(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
    ) -> None:
        token = register_one(registration, contacts, first_name="Ada")

        outcome = verification.verify(token)

        assert outcome.result == VerifyResult.SUCCESS
        assert outcome.first_name == "Ada"

    def test_uppercase_token_accepted(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
    ) -> None:
        token = register_one(registration, contacts)
        assert verification.verify(token.upper()).result == VerifyResult.SUCCESS

    def test_success_marks_contact_verified_and_kills_token(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        clock: FrozenClock,
    ) -> None:
        token = register_one(registration, contacts)
        clock.advance(hours=2)

        verification.verify(token)

        contact = contacts.only()
        assert contact.email_verified is True
        assert contact.verified_at == clock.now()
        assert contact.verification_token is None
        assert contacts.get_by_token(token) is None

    def test_already_verified_holder(
        self, verification: VerificationService, contacts: InMemoryContactRepository, registration
    ) -> None:
        """A verified contact still holding a token reports already_verified."""
        token = register_one(registration, contacts)
        contact = contacts.only()
        contacts.contacts[contact.id].email_verified = True

        assert verification.verify(token).result == VerifyResult.ALREADY_VERIFIED

    def test_deleted_holder_is_expired(
        self, verification: VerificationService, contacts: InMemoryContactRepository, registration, clock
    ) -> None:
        token = register_one(registration, contacts)
        contact = contacts.only()
        contacts.contacts[contact.id].deleted_at = clock.now()

        assert verification.verify(token).result == VerifyResult.EXPIRED
        assert contacts.only().email_verified is False


class TestSingleUse:
    """A token is consumable exactly once."""

    def test_second_use_is_not_found(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
    ) -> None:
        token = register_one(registration, contacts)

        assert verification.verify(token).result == VerifyResult.SUCCESS
        assert verification.verify(token).result == VerifyResult.NOT_FOUND

    def test_second_use_sends_no_second_welcome(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        sender: RecordingEmailSender,
    ) -> None:
        token = register_one(registration, contacts)
        verification.verify(token)
        verification.verify(token)

        welcomes = [m for m in sender.sent if m.subject == EmailTemplate.WELCOME.value]
        assert len(welcomes) == 1

    def test_lost_race_reports_not_found(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        sender: RecordingEmailSender,
    ) -> None:
        """Read sees a pending holder but the conditional write matches nothing."""
        token = register_one(registration, contacts)
        stale = contacts.get_by_token(token)
        contacts.consume_token(token, stale.created_at)
        contacts.get_by_token = lambda _token: stale  # type: ignore[method-assign]
        sent_before = len(sender.sent)

        assert verification.verify(token).result == VerifyResult.NOT_FOUND
        assert len(sender.sent) == sent_before


class TestFreshness:
    """Links expire a fixed window after the latest mailing."""

    def test_link_older_than_window_is_expired(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        clock: FrozenClock,
    ) -> None:
        token = register_one(registration, contacts)
        clock.advance(hours=24, seconds=1)

        assert verification.verify(token).result == VerifyResult.EXPIRED
        assert contacts.only().email_verified is False
        assert contacts.only().verification_token == token

    def test_link_at_window_edge_succeeds(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        clock: FrozenClock,
    ) -> None:
        token = register_one(registration, contacts)
        clock.advance(hours=24)

        assert verification.verify(token).result == VerifyResult.SUCCESS

    def test_reminder_refreshes_window(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        clock: FrozenClock,
    ) -> None:
        """A reminder mails the same token again, so it is fresh again."""
        token = register_one(registration, contacts)
        clock.advance(hours=30)
        contacts.contacts[contacts.only().id].last_reminder_sent_at = clock.now()
        clock.advance(hours=5)

        assert verification.verify(token).result == VerifyResult.SUCCESS


class TestSideEffects:
    """Opt-in record and welcome email after success."""

    def test_opt_in_created(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        opt_ins: InMemoryOptInRepository,
    ) -> None:
        token = register_one(registration, contacts, email="Ada@Example.com")

        verification.verify(token, ip_address="203.0.113.9", user_agent="pytest")

        record = opt_ins.records["ada@example.com"]
        assert record.is_active is True
        assert record.ip_address == "203.0.113.9"
        assert record.user_agent == "pytest"
        assert record.source == "registration_flow"

    def test_existing_inactive_opt_in_not_reactivated(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        opt_ins: InMemoryOptInRepository,
        unsubscriber,
    ) -> None:
        opt_ins.records["user@example.com"] = OptInRecord(
            email="user@example.com", email_normalized="user@example.com"
        )
        unsubscriber.unsubscribe(encode_unsubscribe_token("user@example.com"))
        token = register_one(registration, contacts)

        verification.verify(token)

        assert opt_ins.records["user@example.com"].is_active is False

    def test_welcome_email_sent(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        sender: RecordingEmailSender,
    ) -> None:
        token = register_one(registration, contacts, first_name="Ada")

        verification.verify(token)

        welcome = sender.sent[-1]
        assert welcome.subject == EmailTemplate.WELCOME.value
        assert welcome.to == "user@example.com"
        assert "first_name=Ada" in welcome.text

    def test_welcome_failure_keeps_verification(
        self,
        registration: RegistrationService,
        verification: VerificationService,
        contacts: InMemoryContactRepository,
        sender: RecordingEmailSender,
    ) -> None:
        token = register_one(registration, contacts)
        sender.raise_error = True

        assert verification.verify(token).result == VerifyResult.SUCCESS
        assert contacts.only().email_verified is True

    def test_opt_in_failure_keeps_verification(
        self,
        registration: RegistrationService,
        contacts: InMemoryContactRepository,
        mailer,
        clock,
        policy,
    ) -> None:
        token = register_one(registration, contacts)
        broken_opt_ins = Mock()
        broken_opt_ins.activate_if_absent.side_effect = RuntimeError("db down")
        service = VerificationService(
            repository=contacts, opt_ins=broken_opt_ins, mailer=mailer, clock=clock, policy=policy
        )

        assert service.verify(token).result == VerifyResult.SUCCESS
        assert contacts.only().email_verified is True
