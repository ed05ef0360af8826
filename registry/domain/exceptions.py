"""
Domain exceptions - Semantic error types for the signup lifecycle.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
"""


class RegistryError(Exception):
    """Base class for registry domain errors."""

    pass


class ValidationFailed(RegistryError):
    """Submission failed field validation.

    Field messages are safe to show to the submitter.
    """

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = field_errors
        super().__init__(self.first_message)

    @property
    def first_message(self) -> str:
        return next(iter(self.field_errors.values()), "Invalid submission")


class RateLimitExceeded(RegistryError):
    """Too many submissions from the same origin within the window."""

    pass


class ContactConflict(RegistryError):
    """A concurrent insert already claimed the dedup key."""

    pass
