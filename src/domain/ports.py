"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from .lifecycle import TokenStatus
from .models import (
    AccessCredential,
    Account,
    Block,
    BlockScope,
    Customer,
    Device,
    RegistrationAttempt,
    RegistrationToken,
    SmsEvent,
)

Clock = Callable[[], datetime]


class DeviceRepository(Protocol):
    """Port interface for device lookups."""

    def get(self, device_id: str) -> Device | None: ...

    def add(self, device: Device) -> None: ...


class BlockRepository(Protocol):
    """Port interface for moderation blocks."""

    def find_active(self, scope: BlockScope, value: str, now: datetime) -> Block | None:
        """
        Find a block for scope/value that is active at the given instant.

        A block is active iff active is true and expires_at is NULL or
        later than now.
        """
        ...

    def add(self, block: Block) -> None: ...


class CustomerRepository(Protocol):
    """Port interface for customer rows."""

    def add(self, customer: Customer) -> None: ...

    def get(self, customer_id: str, for_update: bool = False) -> Customer | None: ...

    def find_active_by_contact(self, phone: str, email: str) -> Customer | None:
        """Find an active customer owning either the phone or the email."""
        ...

    def activate(self, customer_id: str, now: datetime) -> bool:
        """
        Flip an inactive customer to active.

        Returns:
            True if a row changed, False if the customer was missing or
            already active
        """
        ...


class RegistrationTokenRepository(Protocol):
    """Port interface for registration token persistence."""

    def add(self, token: RegistrationToken) -> None: ...

    def get(self, token_id: str, for_update: bool = False) -> RegistrationToken | None: ...

    def find_latest_pending(
        self, customer_id: str, phone: str, email: str, device_id: str
    ) -> RegistrationToken | None:
        """Most recently created pending token for the tuple, expired or not."""
        ...

    def find_active(
        self,
        device_id: str,
        customer_id: str,
        now: datetime,
        phone: str | None = None,
        email: str | None = None,
        for_update: bool = False,
    ) -> RegistrationToken | None:
        """
        Find the token a verify request may consume.

        Matches status pending, verified_at NULL, expires_at > now, the
        device and customer, and whichever of phone/email are given.
        With for_update the row stays locked until the transaction ends.
        """
        ...

    def increment_attempts(self, token_id: str) -> int:
        """Increment the attempt counter and return the new value."""
        ...

    def rotate(self, token_id: str, token_hash: str, expires_at: datetime) -> None:
        """Replace hash and expiry in place and reset attempts to 0."""
        ...

    def update_status(
        self, token_id: str, status: TokenStatus, verified_at: datetime | None = None
    ) -> None: ...

    def expire_pending(self, phone: str, email: str, device_id: str) -> int:
        """
        Move every pending token of the tuple to expired; return the count.

        Serializes writers of the same tuple until the transaction ends.
        """
        ...


class RegistrationAttemptRepository(Protocol):
    def add(self, attempt: RegistrationAttempt) -> None: ...


class SmsEventRepository(Protocol):
    def add(self, event: SmsEvent) -> None: ...


class AccountRepository(Protocol):
    def add(self, account: Account) -> None: ...

    def get_by_customer(self, customer_id: str) -> Account | None: ...


class Repositories(Protocol):
    """Repository handles bound to a single store transaction."""

    devices: DeviceRepository
    blocks: BlockRepository
    customers: CustomerRepository
    tokens: RegistrationTokenRepository
    attempts: RegistrationAttemptRepository
    sms_events: SmsEventRepository
    accounts: AccountRepository


class RegistrationStore(Protocol):
    """Port interface for transactional persistence."""

    def transaction(self) -> AbstractContextManager[Repositories]:
        """
        Open a transaction scope.

        Every write made through the yielded repositories commits when the
        block exits normally and rolls back when it raises. Storage
        failures surface as TransactionFailed.
        """
        ...


class OtpGenerator(Protocol):
    def generate(self) -> str:
        """Return a fixed-length numeric code as a string (keeps leading zeros)."""
        ...


class OtpHasher(Protocol):
    def hash(self, code: str) -> str:
        """Deterministic one-way digest of a code."""
        ...

    def matches(self, code: str, digest: str) -> bool:
        """Constant-time check of code against a stored digest."""
        ...


class SmsSender(Protocol):
    """Port interface for SMS delivery."""

    def send_sms(self, phone: str, message: str) -> None: ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_email(self, email: str, message: str) -> None: ...


class CredentialIssuer(Protocol):
    """Port interface for access token issuance."""

    def issue(self, customer: Customer) -> AccessCredential: ...
