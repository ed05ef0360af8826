"""Repository adapters - Database implementations."""

from .postgres import (
    PostgresContactRepository,
    PostgresOptInRepository,
    PostgresRateLimitRepository,
    run_migrations,
)

__all__ = [
    "PostgresContactRepository",
    "PostgresOptInRepository",
    "PostgresRateLimitRepository",
    "run_migrations",
]
