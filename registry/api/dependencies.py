"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from registry.adapters.clock import SystemClock
from registry.adapters.email import ConsoleEmailSender, ResendEmailSender
from registry.adapters.repository.postgres import (
    PostgresContactRepository,
    PostgresOptInRepository,
    PostgresRateLimitRepository,
)
from registry.adapters.templates import JinjaTemplateRenderer
from registry.config.settings import Settings, get_settings
from registry.domain.mailer import LifecycleMailer
from registry.domain.ports import EmailSender
from registry.domain.rate_limit import RateLimiter
from registry.domain.registration import RegistrationService
from registry.domain.reminders import ReminderScheduler
from registry.domain.unsubscribe import UnsubscribeService
from registry.domain.verification import VerificationService

logger = logging.getLogger(__name__)

# Module-level singleton - the clock is stateless
_clock = SystemClock()

# Bearer scheme for the scheduler job endpoint
job_bearer = HTTPBearer(auto_error=False)


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_client_ip(request: Request) -> str:
    """
    Resolve the origin used for rate limiting.

    First X-Forwarded-For hop when behind a proxy, else the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def build_email_sender(settings: Settings) -> EmailSender:
    """Select the email transport configured by ``email_backend``."""
    if settings.email_backend == "resend":
        return ResendEmailSender(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            reply_to=settings.email_reply_to,
        )
    return ConsoleEmailSender()


def build_mailer(settings: Settings) -> LifecycleMailer:
    return LifecycleMailer(
        renderer=JinjaTemplateRenderer(sender_name=settings.sender_name),
        sender=build_email_sender(settings),
    )


def get_registration_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repositories, rate limiter and mailer for the domain service.
    """
    pool = get_pool(request)
    policy = settings.to_policy()
    rate_limiter = RateLimiter(
        repository=PostgresRateLimitRepository(pool), clock=_clock, policy=policy
    )
    return RegistrationService(
        repository=PostgresContactRepository(pool),
        rate_limiter=rate_limiter,
        mailer=build_mailer(settings),
        clock=_clock,
        policy=policy,
    )


def get_verification_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> VerificationService:
    pool = get_pool(request)
    return VerificationService(
        repository=PostgresContactRepository(pool),
        opt_ins=PostgresOptInRepository(pool),
        mailer=build_mailer(settings),
        clock=_clock,
        policy=settings.to_policy(),
    )


def get_unsubscribe_service(request: Request) -> UnsubscribeService:
    return UnsubscribeService(opt_ins=PostgresOptInRepository(get_pool(request)), clock=_clock)


def build_reminder_scheduler(pool: ConnectionPool, settings: Settings) -> ReminderScheduler:
    return ReminderScheduler(
        repository=PostgresContactRepository(pool),
        mailer=build_mailer(settings),
        clock=_clock,
        policy=settings.to_policy(),
    )


def get_reminder_scheduler(
    request: Request, settings: Settings = Depends(get_settings)
) -> ReminderScheduler:
    return build_reminder_scheduler(get_pool(request), settings)


def require_job_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(job_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Guard for the scheduler job endpoint.

    Missing credentials get 401; a wrong token gets 403. When no
    ``job_secret`` is configured every caller is refused.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not settings.job_secret:
        logger.warning("Job endpoint called but JOB_SECRET is not configured")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if not secrets.compare_digest(
        credentials.credentials.encode(), settings.job_secret.encode()
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
