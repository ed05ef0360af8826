"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A frozen clock and a fast-to-read policy
- In-memory repositories and a recording email sender
- Domain services wired to those fakes
- A PostgreSQL pool for integration and adversarial tests
"""

from collections.abc import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from registry.adapters.repository.postgres import run_migrations
from registry.config.settings import get_settings
from registry.domain.mailer import LifecycleMailer
from registry.domain.policy import RegistryPolicy
from registry.domain.rate_limit import RateLimiter
from registry.domain.registration import RegistrationService
from registry.domain.reminders import ReminderScheduler
from registry.domain.unsubscribe import UnsubscribeService
from registry.domain.verification import VerificationService
from tests.fakes import (
    FrozenClock,
    InMemoryContactRepository,
    InMemoryOptInRepository,
    InMemoryRateLimitRepository,
    RecordingEmailSender,
    StubRenderer,
)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def policy() -> RegistryPolicy:
    return RegistryPolicy(
        verify_url="https://api.test/v1/verify-email",
        unsubscribe_url="https://api.test/v1/unsubscribe",
    )


@pytest.fixture
def contacts() -> InMemoryContactRepository:
    return InMemoryContactRepository()


@pytest.fixture
def rate_limits() -> InMemoryRateLimitRepository:
    return InMemoryRateLimitRepository()


@pytest.fixture
def opt_ins() -> InMemoryOptInRepository:
    return InMemoryOptInRepository()


@pytest.fixture
def sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def mailer(sender: RecordingEmailSender) -> LifecycleMailer:
    return LifecycleMailer(renderer=StubRenderer(), sender=sender)


@pytest.fixture
def rate_limiter(
    rate_limits: InMemoryRateLimitRepository, clock: FrozenClock, policy: RegistryPolicy
) -> RateLimiter:
    return RateLimiter(repository=rate_limits, clock=clock, policy=policy)


@pytest.fixture
def registration(
    contacts: InMemoryContactRepository,
    rate_limiter: RateLimiter,
    mailer: LifecycleMailer,
    clock: FrozenClock,
    policy: RegistryPolicy,
) -> RegistrationService:
    return RegistrationService(
        repository=contacts,
        rate_limiter=rate_limiter,
        mailer=mailer,
        clock=clock,
        policy=policy,
    )


@pytest.fixture
def verification(
    contacts: InMemoryContactRepository,
    opt_ins: InMemoryOptInRepository,
    mailer: LifecycleMailer,
    clock: FrozenClock,
    policy: RegistryPolicy,
) -> VerificationService:
    return VerificationService(
        repository=contacts, opt_ins=opt_ins, mailer=mailer, clock=clock, policy=policy
    )


@pytest.fixture
def scheduler(
    contacts: InMemoryContactRepository,
    mailer: LifecycleMailer,
    clock: FrozenClock,
    policy: RegistryPolicy,
) -> ReminderScheduler:
    return ReminderScheduler(repository=contacts, mailer=mailer, clock=clock, policy=policy)


@pytest.fixture
def unsubscriber(opt_ins: InMemoryOptInRepository, clock: FrozenClock) -> UnsubscribeService:
    return UnsubscribeService(opt_ins=opt_ins, clock=clock)


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool against the configured PostgreSQL database.

    Skips the requesting test when the database is unreachable, so the
    unit suite runs without docker-compose. Migrations run once per session.
    """
    settings = get_settings()
    try:
        with psycopg.connect(settings.database_url, connect_timeout=3):
            pass
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def pool(pg_pool: ConnectionPool) -> ConnectionPool:
    """Session pool with every registry table emptied before the test."""
    with pg_pool.connection() as conn:
        conn.execute(
            "TRUNCATE verification_reminders_log, registry_contacts, "
            "registry_rate_limits, updates_opt_in"
        )
    return pg_pool
