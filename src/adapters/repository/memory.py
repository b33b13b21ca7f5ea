"""
In-memory repository adapter - Implements the RegistrationStore protocol.

Backs unit tests and the local demo mode (DATABASE_URL=memory://).
Transactions are serialised by a re-entrant lock, which stands in for the
row locks PostgreSQL takes, and a snapshot of every table is restored
when the transaction block raises.

Stored entities are copied on the way in and on the way out, so callers
never mutate table state except through repository methods.
"""

import copy
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime

from src.domain.exceptions import TransactionFailed
from src.domain.lifecycle import TokenEvent, TokenStatus, transition
from src.domain.models import (
    Account,
    Block,
    BlockScope,
    Customer,
    Device,
    RegistrationAttempt,
    RegistrationToken,
    SmsEvent,
)

logger = logging.getLogger(__name__)


class IntegrityViolation(Exception):
    """Mirrors the unique constraints of the SQL schema."""


@dataclass
class MemoryTables:
    devices: dict[str, Device] = field(default_factory=dict)
    blocks: dict[str, Block] = field(default_factory=dict)
    customers: dict[str, Customer] = field(default_factory=dict)
    tokens: dict[str, RegistrationToken] = field(default_factory=dict)
    accounts: dict[str, Account] = field(default_factory=dict)
    attempts: list[RegistrationAttempt] = field(default_factory=list)
    sms_events: list[SmsEvent] = field(default_factory=list)


class MemoryDeviceRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def get(self, device_id: str) -> Device | None:
        device = self._tables.devices.get(device_id)
        return replace(device) if device else None

    def add(self, device: Device) -> None:
        self._tables.devices[device.id] = replace(device)


class MemoryBlockRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def find_active(self, scope: BlockScope, value: str, now: datetime) -> Block | None:
        for block in self._tables.blocks.values():
            if block.scope == scope and block.value == value and block.is_active_at(now):
                return replace(block)
        return None

    def add(self, block: Block) -> None:
        self._tables.blocks[block.id] = replace(block)


class MemoryCustomerRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def add(self, customer: Customer) -> None:
        if customer.is_active and self.find_active_by_contact(customer.phone, customer.email):
            raise IntegrityViolation("Active customer already exists for this phone or email")
        self._tables.customers[customer.id] = replace(customer)

    def get(self, customer_id: str, for_update: bool = False) -> Customer | None:
        customer = self._tables.customers.get(customer_id)
        return replace(customer) if customer else None

    def find_active_by_contact(self, phone: str, email: str) -> Customer | None:
        for customer in self._tables.customers.values():
            if customer.is_active and (customer.phone == phone or customer.email == email):
                return replace(customer)
        return None

    def activate(self, customer_id: str, now: datetime) -> bool:
        customer = self._tables.customers.get(customer_id)
        if customer is None or customer.is_active:
            return False
        if self.find_active_by_contact(customer.phone, customer.email):
            raise IntegrityViolation("Active customer already exists for this phone or email")
        customer.is_active = True
        customer.updated_at = now
        return True


class MemoryRegistrationTokenRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def add(self, token: RegistrationToken) -> None:
        self._tables.tokens[token.id] = replace(token)

    def get(self, token_id: str, for_update: bool = False) -> RegistrationToken | None:
        token = self._tables.tokens.get(token_id)
        return replace(token) if token else None

    def _latest(self, tokens: list[RegistrationToken]) -> RegistrationToken | None:
        if not tokens:
            return None
        return replace(max(tokens, key=lambda t: t.created_at))

    def find_latest_pending(
        self, customer_id: str, phone: str, email: str, device_id: str
    ) -> RegistrationToken | None:
        return self._latest(
            [
                t
                for t in self._tables.tokens.values()
                if t.customer_id == customer_id
                and t.phone == phone
                and t.email == email
                and t.device_id == device_id
                and t.status == TokenStatus.PENDING
            ]
        )

    def find_active(
        self,
        device_id: str,
        customer_id: str,
        now: datetime,
        phone: str | None = None,
        email: str | None = None,
        for_update: bool = False,
    ) -> RegistrationToken | None:
        return self._latest(
            [
                t
                for t in self._tables.tokens.values()
                if t.status == TokenStatus.PENDING
                and t.verified_at is None
                and t.expires_at > now
                and t.device_id == device_id
                and t.customer_id == customer_id
                and (not phone or t.phone == phone)
                and (not email or t.email == email)
            ]
        )

    def increment_attempts(self, token_id: str) -> int:
        token = self._tables.tokens[token_id]
        token.attempts += 1
        return token.attempts

    def rotate(self, token_id: str, token_hash: str, expires_at: datetime) -> None:
        token = self._tables.tokens[token_id]
        if token.status != TokenStatus.PENDING:
            return
        token.token_hash = token_hash
        token.expires_at = expires_at
        token.attempts = 0

    def update_status(
        self, token_id: str, status: TokenStatus, verified_at: datetime | None = None
    ) -> None:
        token = self._tables.tokens[token_id]
        token.status = TokenStatus(status)
        if verified_at is not None:
            token.verified_at = verified_at

    def expire_pending(self, phone: str, email: str, device_id: str) -> int:
        count = 0
        for token in self._tables.tokens.values():
            if (
                token.phone == phone
                and token.email == email
                and token.device_id == device_id
                and token.status == TokenStatus.PENDING
            ):
                token.status = transition(token.status, TokenEvent.EXPIRE)
                count += 1
        return count


class MemoryRegistrationAttemptRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def add(self, attempt: RegistrationAttempt) -> None:
        self._tables.attempts.append(replace(attempt))


class MemorySmsEventRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def add(self, event: SmsEvent) -> None:
        self._tables.sms_events.append(replace(event))


class MemoryAccountRepository:
    def __init__(self, tables: MemoryTables) -> None:
        self._tables = tables

    def add(self, account: Account) -> None:
        if self.get_by_customer(account.customer_id) is not None:
            raise IntegrityViolation(f"Account already exists for customer {account.customer_id}")
        self._tables.accounts[account.id] = replace(account)

    def get_by_customer(self, customer_id: str) -> Account | None:
        for account in self._tables.accounts.values():
            if account.customer_id == customer_id:
                return replace(account)
        return None


class MemoryRepositories:
    """Implements the Repositories protocol over shared tables."""

    def __init__(self, tables: MemoryTables) -> None:
        self.devices = MemoryDeviceRepository(tables)
        self.blocks = MemoryBlockRepository(tables)
        self.customers = MemoryCustomerRepository(tables)
        self.tokens = MemoryRegistrationTokenRepository(tables)
        self.attempts = MemoryRegistrationAttemptRepository(tables)
        self.sms_events = MemorySmsEventRepository(tables)
        self.accounts = MemoryAccountRepository(tables)


class InMemoryRegistrationStore:
    """Implements RegistrationStore protocol with process-local tables."""

    def __init__(self) -> None:
        self.tables = MemoryTables()
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[MemoryRepositories]:
        with self._lock:
            snapshot = copy.deepcopy(self.tables)
            try:
                yield MemoryRepositories(self.tables)
            except IntegrityViolation as e:
                logger.error("Transaction rolled back: %s", e)
                self._restore(snapshot)
                raise TransactionFailed() from e
            except BaseException:
                logger.debug("Rolling back in-memory transaction")
                self._restore(snapshot)
                raise

    def _restore(self, snapshot: MemoryTables) -> None:
        # Restore in place so repositories holding a reference see the rollback
        for name in vars(snapshot):
            setattr(self.tables, name, getattr(snapshot, name))
