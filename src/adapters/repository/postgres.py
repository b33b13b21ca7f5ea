"""
PostgreSQL repository adapter - Implements the RegistrationStore protocol.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Transaction Design:
------------------
Each call to transaction() checks one connection out of the pool and binds
every entity repository to it. psycopg_pool commits when the block exits
normally and rolls back when it raises, which gives the domain its
all-or-nothing activation and its durable failed-attempt bookkeeping.

Token lookups that precede a mutation use SELECT ... FOR UPDATE. Under READ
COMMITTED, a second verifier blocked on the lock re-evaluates the WHERE
clause once the first commits, finds the token no longer pending, and
gets no row back.

Domain exceptions raised inside the block propagate unchanged;
psycopg errors are translated to TransactionFailed.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.exceptions import TransactionFailed
from src.domain.lifecycle import TokenEvent, TokenStatus, transition
from src.domain.models import (
    Account,
    AttemptAction,
    AttemptResult,
    Block,
    BlockScope,
    Customer,
    Device,
    RegistrationAttempt,
    RegistrationToken,
    SmsEvent,
)

logger = logging.getLogger(__name__)


class _Repository:
    """Shared plumbing: every repository runs on the transaction's connection."""

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def _fetchone(self, sql: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        with self._conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            return cursor.fetchone()

    def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        with self._conn.cursor() as cursor:
            cursor.execute(sql, params)
            return cursor.rowcount


class PostgresDeviceRepository(_Repository):
    def get(self, device_id: str) -> Device | None:
        row = self._fetchone("SELECT * FROM devices WHERE id = %s", (device_id,))
        return Device(**row) if row else None

    def add(self, device: Device) -> None:
        self._execute(
            """
            INSERT INTO devices (id, customer_id, device_fingerprint, device_name, device_type,
                                 os, os_version, ip, is_active, last_used_at, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (
                device.id,
                device.customer_id,
                device.device_fingerprint,
                device.device_name,
                device.device_type,
                device.os,
                device.os_version,
                device.ip,
                device.is_active,
                device.last_used_at,
                device.created_at,
            ),
        )


class PostgresBlockRepository(_Repository):
    def find_active(self, scope: BlockScope, value: str, now: datetime) -> Block | None:
        row = self._fetchone(
            """
            SELECT * FROM blocks
            WHERE scope = %s
              AND value = %s
              AND active
              AND (expires_at IS NULL OR expires_at > %s)
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (BlockScope(scope).value, value, now),
        )
        if row is None:
            return None
        row["scope"] = BlockScope(row["scope"])
        return Block(**row)

    def add(self, block: Block) -> None:
        self._execute(
            """
            INSERT INTO blocks (id, scope, value, active, expires_at, reason, source, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (
                block.id,
                BlockScope(block.scope).value,
                block.value,
                block.active,
                block.expires_at,
                block.reason,
                block.source,
                block.created_at,
            ),
        )


class PostgresCustomerRepository(_Repository):
    def add(self, customer: Customer) -> None:
        self._execute(
            """
            INSERT INTO customers (id, phone, email, password_hash, first_name, last_name,
                                   device_id, is_active, role, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s,
                    COALESCE(%s, NOW()), COALESCE(%s, NOW()))
            """,
            (
                customer.id,
                customer.phone,
                customer.email,
                customer.password_hash,
                customer.first_name,
                customer.last_name,
                customer.device_id,
                customer.is_active,
                customer.role,
                customer.created_at,
                customer.updated_at,
            ),
        )

    def get(self, customer_id: str, for_update: bool = False) -> Customer | None:
        sql = "SELECT * FROM customers WHERE id = %s"
        if for_update:
            sql += " FOR UPDATE"
        row = self._fetchone(sql, (customer_id,))
        return Customer(**row) if row else None

    def find_active_by_contact(self, phone: str, email: str) -> Customer | None:
        row = self._fetchone(
            "SELECT * FROM customers WHERE is_active AND (phone = %s OR email = %s) LIMIT 1",
            (phone, email),
        )
        return Customer(**row) if row else None

    def activate(self, customer_id: str, now: datetime) -> bool:
        rowcount = self._execute(
            """
            UPDATE customers
            SET is_active = TRUE, updated_at = %s
            WHERE id = %s AND NOT is_active
            """,
            (now, customer_id),
        )
        return rowcount == 1


def _token_from_row(row: dict[str, Any]) -> RegistrationToken:
    row["status"] = TokenStatus(row["status"])
    return RegistrationToken(**row)


class PostgresRegistrationTokenRepository(_Repository):
    def add(self, token: RegistrationToken) -> None:
        self._execute(
            """
            INSERT INTO registration_tokens (
                id, customer_id, phone, email, device_id, token_hash, token_type,
                device_fingerprint, ip, status, attempts, max_attempts,
                expires_at, created_at, verified_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                token.id,
                token.customer_id,
                token.phone,
                token.email,
                token.device_id,
                token.token_hash,
                token.token_type,
                token.device_fingerprint,
                token.ip,
                TokenStatus(token.status).value,
                token.attempts,
                token.max_attempts,
                token.expires_at,
                token.created_at,
                token.verified_at,
            ),
        )

    def get(self, token_id: str, for_update: bool = False) -> RegistrationToken | None:
        sql = "SELECT * FROM registration_tokens WHERE id = %s"
        if for_update:
            sql += " FOR UPDATE"
        row = self._fetchone(sql, (token_id,))
        return _token_from_row(row) if row else None

    def find_latest_pending(
        self, customer_id: str, phone: str, email: str, device_id: str
    ) -> RegistrationToken | None:
        row = self._fetchone(
            """
            SELECT * FROM registration_tokens
            WHERE customer_id = %s
              AND phone = %s
              AND email = %s
              AND device_id = %s
              AND status = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (customer_id, phone, email, device_id, TokenStatus.PENDING.value),
        )
        return _token_from_row(row) if row else None

    def find_active(
        self,
        device_id: str,
        customer_id: str,
        now: datetime,
        phone: str | None = None,
        email: str | None = None,
        for_update: bool = False,
    ) -> RegistrationToken | None:
        conditions = [
            "status = %s",
            "verified_at IS NULL",
            "expires_at > %s",
            "device_id = %s",
            "customer_id = %s",
        ]
        params: list[Any] = [TokenStatus.PENDING.value, now, device_id, customer_id]
        if phone:
            conditions.append("phone = %s")
            params.append(phone)
        if email:
            conditions.append("email = %s")
            params.append(email)

        sql = (
            "SELECT * FROM registration_tokens WHERE "
            + " AND ".join(conditions)
            + " ORDER BY created_at DESC LIMIT 1"
        )
        if for_update:
            sql += " FOR UPDATE"

        row = self._fetchone(sql, tuple(params))
        return _token_from_row(row) if row else None

    def increment_attempts(self, token_id: str) -> int:
        row = self._fetchone(
            """
            UPDATE registration_tokens
            SET attempts = attempts + 1
            WHERE id = %s
            RETURNING attempts
            """,
            (token_id,),
        )
        if row is None:
            raise TransactionFailed(f"Registration token vanished: {token_id}")
        return row["attempts"]

    def rotate(self, token_id: str, token_hash: str, expires_at: datetime) -> None:
        self._execute(
            """
            UPDATE registration_tokens
            SET token_hash = %s, expires_at = %s, attempts = 0
            WHERE id = %s AND status = %s
            """,
            (token_hash, expires_at, token_id, TokenStatus.PENDING.value),
        )

    def update_status(
        self, token_id: str, status: TokenStatus, verified_at: datetime | None = None
    ) -> None:
        self._execute(
            """
            UPDATE registration_tokens
            SET status = %s, verified_at = COALESCE(%s, verified_at)
            WHERE id = %s
            """,
            (TokenStatus(status).value, verified_at, token_id),
        )

    def expire_pending(self, phone: str, email: str, device_id: str) -> int:
        # Held until commit: concurrent registrations of one tuple run one at a time
        self._execute(
            "SELECT pg_advisory_xact_lock(hashtext(%s))",
            (f"registration:{phone}:{email}:{device_id}",),
        )
        return self._execute(
            """
            UPDATE registration_tokens
            SET status = %s
            WHERE phone = %s AND email = %s AND device_id = %s AND status = %s
            """,
            (
                transition(TokenStatus.PENDING, TokenEvent.EXPIRE).value,
                phone,
                email,
                device_id,
                TokenStatus.PENDING.value,
            ),
        )


class PostgresRegistrationAttemptRepository(_Repository):
    def add(self, attempt: RegistrationAttempt) -> None:
        self._execute(
            """
            INSERT INTO registration_attempts (id, phone, email, ip, device_id,
                                               action, result, reason, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (
                attempt.id,
                attempt.phone,
                attempt.email,
                attempt.ip,
                attempt.device_id,
                AttemptAction(attempt.action).value,
                AttemptResult(attempt.result).value,
                attempt.reason,
                attempt.created_at,
            ),
        )


class PostgresSmsEventRepository(_Repository):
    def add(self, event: SmsEvent) -> None:
        self._execute(
            """
            INSERT INTO sms_events (id, phone, direction, status, message, device_id, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (
                event.id,
                event.phone,
                event.direction,
                event.status,
                event.message,
                event.device_id,
                event.created_at,
            ),
        )


class PostgresAccountRepository(_Repository):
    def add(self, account: Account) -> None:
        self._execute(
            """
            INSERT INTO accounts (id, customer_id, account_type, plan, created_at)
            VALUES (%s, %s, %s, %s, COALESCE(%s, NOW()))
            """,
            (
                account.id,
                account.customer_id,
                account.account_type,
                account.plan,
                account.created_at,
            ),
        )

    def get_by_customer(self, customer_id: str) -> Account | None:
        row = self._fetchone("SELECT * FROM accounts WHERE customer_id = %s", (customer_id,))
        return Account(**row) if row else None


class PostgresRepositories:
    """Implements the Repositories protocol for one connection."""

    def __init__(self, conn: psycopg.Connection) -> None:
        self.devices = PostgresDeviceRepository(conn)
        self.blocks = PostgresBlockRepository(conn)
        self.customers = PostgresCustomerRepository(conn)
        self.tokens = PostgresRegistrationTokenRepository(conn)
        self.attempts = PostgresRegistrationAttemptRepository(conn)
        self.sms_events = PostgresSmsEventRepository(conn)
        self.accounts = PostgresAccountRepository(conn)


class PostgresRegistrationStore:
    """
    Implements RegistrationStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    @contextmanager
    def transaction(self) -> Iterator[PostgresRepositories]:
        try:
            with self._pool.connection() as conn:
                yield PostgresRepositories(conn)
        except psycopg.Error as e:
            logger.error("Transaction rolled back: %s", e)
            raise TransactionFailed() from e


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Find migrations directory relative to this file
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

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
