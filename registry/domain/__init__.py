"""
Domain layer - Pure business logic with zero framework imports.

This package contains the signup lifecycle: validation, dedup keys, rate
limiting, registration, verification, reminders/expiry and unsubscribe.
It defines its own port interfaces for infrastructure abstraction.
"""

from .exceptions import ContactConflict, RateLimitExceeded, RegistryError, ValidationFailed
from .models import Contact, ReminderStage, Submission
from .policy import RegistryPolicy
from .ports import (
    Clock,
    ContactRepository,
    EmailSender,
    EmailTemplate,
    OptInRepository,
    RateLimitRepository,
    RegistrationOutcome,
    TemplateRenderer,
    UnsubscribeResult,
    VerifyResult,
)
from .registration import RegistrationService
from .reminders import ReminderScheduler, RunSummary
from .unsubscribe import UnsubscribeService
from .verification import VerificationOutcome, VerificationService

__all__ = [
    "Clock",
    "Contact",
    "ContactConflict",
    "ContactRepository",
    "EmailSender",
    "EmailTemplate",
    "OptInRepository",
    "RateLimitExceeded",
    "RateLimitRepository",
    "RegistrationOutcome",
    "RegistrationService",
    "RegistryError",
    "RegistryPolicy",
    "ReminderScheduler",
    "ReminderStage",
    "RunSummary",
    "Submission",
    "TemplateRenderer",
    "UnsubscribeResult",
    "UnsubscribeService",
    "ValidationFailed",
    "VerificationOutcome",
    "VerificationService",
    "VerifyResult",
]
