"""
PostgreSQL repository adapters - Implement the domain persistence ports.

This module provides the PostgreSQL implementations of the contact,
rate-limit and opt-in ports using psycopg3 with raw SQL.

Concurrency Design:
-------------------
Every lifecycle transition is a single conditional statement whose WHERE
clause restates the state the domain observed. When a concurrent request
got there first the statement matches zero rows and the method returns
False; the domain turns that into an idempotent outcome.

1. **Dedup key uniqueness**: ``uq_registry_contacts_email_hash`` makes a
   concurrent duplicate insert fail with UniqueViolation, surfaced as
   ContactConflict.

2. **Token consumption**: ``WHERE verification_token = %s AND NOT
   email_verified AND deleted_at IS NULL`` - two clicks cannot both flip
   the flag, and the token is set to NULL in the same statement.

3. **Reminder bookkeeping**: the count bump is guarded by the previous
   stage number and committed in one transaction with its log row.

4. **Expiry**: guarded by the row still being pending, so a verification
   landing first always wins.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from registry.domain.exceptions import ContactConflict
from registry.domain.models import (
    DELETION_LOG_TYPE,
    Contact,
    ContactProfile,
    OptInRecord,
    ReminderStage,
)

logger = logging.getLogger(__name__)

# Shipped as package data: registry/migrations/*.sql
MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"

_EMAIL_HASH_CONSTRAINT = "uq_registry_contacts_email_hash"

_CONTACT_COLUMNS = """
    id, email, email_hash, first_name, zip_code, dpc_status, contact_preference,
    referral_source, utm_source, utm_medium, utm_campaign,
    email_verified, verified_at, verification_token, verification_sent_at,
    reminder_count, last_reminder_sent_at, deleted_at, deletion_reason,
    email_consent, email_consent_at, created_at, updated_at
"""


def _to_contact(row: dict[str, Any]) -> Contact:
    return Contact(**row)


class PostgresContactRepository:
    """
    Implements ContactRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get_by_email_hash(self, email_hash: str) -> Contact | None:
        sql = f"SELECT {_CONTACT_COLUMNS} FROM registry_contacts WHERE email_hash = %s"
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (email_hash,))
            row = cursor.fetchone()
        return _to_contact(row) if row is not None else None

    def get_by_token(self, token: str) -> Contact | None:
        sql = f"SELECT {_CONTACT_COLUMNS} FROM registry_contacts WHERE verification_token = %s"
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (token,))
            row = cursor.fetchone()
        return _to_contact(row) if row is not None else None

    def insert_contact(
        self, profile: ContactProfile, email_hash: str, token: str, now: datetime
    ) -> Contact:
        """
        Insert a new pending contact.

        The token is issued (and the verification email sent) at insert
        time, so verification_sent_at starts equal to created_at.

        Raises:
            ContactConflict: If a concurrent request inserted the same dedup key
        """
        sql = f"""
            INSERT INTO registry_contacts (
                id, email, email_hash, first_name, zip_code, dpc_status, contact_preference,
                referral_source, utm_source, utm_medium, utm_campaign,
                email_verified, verification_token, verification_sent_at, reminder_count,
                email_consent, email_consent_at, created_at, updated_at
            )
            VALUES (
                %(id)s, %(email)s, %(email_hash)s, %(first_name)s, %(zip_code)s,
                %(dpc_status)s, %(contact_preference)s,
                %(referral_source)s, %(utm_source)s, %(utm_medium)s, %(utm_campaign)s,
                FALSE, %(token)s, %(now)s, 0,
                %(email_consent)s, %(email_consent_at)s, %(now)s, %(now)s
            )
            RETURNING {_CONTACT_COLUMNS}
        """
        params = self._profile_params(profile, now)
        params.update(id=uuid.uuid4(), email_hash=email_hash, token=token, now=now)

        try:
            with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
                conn.commit()
        except errors.UniqueViolation as e:
            if e.diag.constraint_name == _EMAIL_HASH_CONSTRAINT:
                raise ContactConflict(email_hash) from e
            raise
        return _to_contact(row)

    def refresh_contact(
        self, contact_id: UUID, profile: ContactProfile, token: str, now: datetime
    ) -> bool:
        """
        Overwrite profile, rotate token, restart the reminder cycle.

        Applies to pending and soft-deleted rows; a row verified in the
        meantime is left untouched and False is returned.
        """
        sql = """
            UPDATE registry_contacts
            SET email = %(email)s,
                first_name = %(first_name)s,
                zip_code = %(zip_code)s,
                dpc_status = %(dpc_status)s,
                contact_preference = %(contact_preference)s,
                referral_source = %(referral_source)s,
                utm_source = %(utm_source)s,
                utm_medium = %(utm_medium)s,
                utm_campaign = %(utm_campaign)s,
                email_consent = %(email_consent)s,
                email_consent_at = %(email_consent_at)s,
                verification_token = %(token)s,
                verification_sent_at = %(now)s,
                reminder_count = 0,
                last_reminder_sent_at = NULL,
                deleted_at = NULL,
                deletion_reason = NULL,
                updated_at = %(now)s
            WHERE id = %(id)s AND email_verified = FALSE
        """
        params = self._profile_params(profile, now)
        params.update(id=contact_id, token=token, now=now)

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def consume_token(self, token: str, now: datetime) -> bool:
        sql = """
            UPDATE registry_contacts
            SET email_verified = TRUE,
                verified_at = %s,
                verification_token = NULL,
                updated_at = %s
            WHERE verification_token = %s
              AND email_verified = FALSE
              AND deleted_at IS NULL
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (now, now, token))
            conn.commit()
            return cursor.rowcount == 1

    def list_pending(self, issued_before: datetime) -> list[Contact]:
        sql = f"""
            SELECT {_CONTACT_COLUMNS}
            FROM registry_contacts
            WHERE email_verified = FALSE
              AND deleted_at IS NULL
              AND COALESCE(verification_sent_at, created_at) <= %s
            ORDER BY created_at
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (issued_before,))
            rows = cursor.fetchall()
        return [_to_contact(row) for row in rows]

    def record_reminder(
        self,
        contact_id: UUID,
        stage: ReminderStage,
        sent_at: datetime,
        message_id: str | None,
    ) -> bool:
        bump_sql = """
            UPDATE registry_contacts
            SET reminder_count = %s,
                last_reminder_sent_at = %s,
                updated_at = %s
            WHERE id = %s
              AND reminder_count = %s
              AND email_verified = FALSE
              AND deleted_at IS NULL
        """
        log_sql = """
            INSERT INTO verification_reminders_log (contact_id, reminder_type, email_provider_id, sent_at)
            VALUES (%s, %s, %s, %s)
        """
        with self._pool.connection() as conn:
            with conn.transaction(), conn.cursor() as cursor:
                cursor.execute(
                    bump_sql,
                    (stage.number, sent_at, sent_at, contact_id, stage.number - 1),
                )
                if cursor.rowcount != 1:
                    return False
                cursor.execute(log_sql, (contact_id, stage.value, message_id, sent_at))
            return True

    def expire_contact(self, contact_id: UUID, now: datetime, reason: str) -> bool:
        expire_sql = """
            UPDATE registry_contacts
            SET deleted_at = %s,
                deletion_reason = %s,
                verification_token = NULL,
                updated_at = %s
            WHERE id = %s
              AND email_verified = FALSE
              AND deleted_at IS NULL
        """
        log_sql = """
            INSERT INTO verification_reminders_log (contact_id, reminder_type, sent_at)
            VALUES (%s, %s, %s)
        """
        with self._pool.connection() as conn:
            with conn.transaction(), conn.cursor() as cursor:
                cursor.execute(expire_sql, (now, reason, now, contact_id))
                if cursor.rowcount != 1:
                    return False
                cursor.execute(log_sql, (contact_id, DELETION_LOG_TYPE, now))
            return True

    def _profile_params(self, profile: ContactProfile, now: datetime) -> dict[str, Any]:
        return {
            "email": profile.email,
            "first_name": profile.first_name,
            "zip_code": profile.zip_code,
            "dpc_status": profile.dpc_status,
            "contact_preference": profile.contact_preference,
            "referral_source": profile.referral_source,
            "utm_source": profile.utm_source,
            "utm_medium": profile.utm_medium,
            "utm_campaign": profile.utm_campaign,
            "email_consent": profile.email_consent,
            "email_consent_at": now if profile.email_consent else None,
        }


class PostgresRateLimitRepository:
    """Implements RateLimitRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def count_since(self, origin: str, since: datetime) -> int:
        sql = """
            SELECT COUNT(*) FROM registry_rate_limits
            WHERE ip_address = %s AND created_at >= %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (origin, since))
            row = cursor.fetchone()
        return int(row[0]) if row is not None else 0

    def record(self, origin: str, at: datetime) -> None:
        sql = "INSERT INTO registry_rate_limits (ip_address, created_at) VALUES (%s, %s)"
        with self._pool.connection() as conn:
            conn.execute(sql, (origin, at))
            conn.commit()


class PostgresOptInRepository:
    """Implements OptInRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def activate_if_absent(self, record: OptInRecord, now: datetime) -> bool:
        """
        Insert an active opt-in unless the normalized email already has one.

        An existing row (active or not) is never modified: a previous
        unsubscribe is not overridden by a later verification.
        """
        sql = """
            INSERT INTO updates_opt_in (
                email, email_normalized, is_active, verified_at, source,
                ip_address, user_agent, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email_normalized) DO NOTHING
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    record.email,
                    record.email_normalized,
                    record.is_active,
                    record.verified_at,
                    record.source,
                    record.ip_address,
                    record.user_agent,
                    now,
                    now,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def deactivate(self, email_normalized: str, now: datetime) -> int:
        sql = """
            UPDATE updates_opt_in
            SET is_active = FALSE, updated_at = %s
            WHERE email_normalized = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (now, email_normalized))
            conn.commit()
            return cursor.rowcount


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    migrations_dir = MIGRATIONS_DIR

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
