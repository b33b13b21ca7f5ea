"""
Domain entities for the registration subsystem.

Plain dataclasses shared by the services and every repository adapter.
Identifiers are UUID4 strings generated by the domain, and every timestamp
is a timezone-aware UTC datetime supplied by the injected clock.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from .lifecycle import TokenStatus


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


class BlockScope(str, Enum):
    DEVICE = "device"
    PHONE = "phone"
    EMAIL = "email"


class AttemptAction(str, Enum):
    SEND_TOKEN = "send_token"
    VERIFY_OTP = "verify_otp"


class AttemptResult(str, Enum):
    INITIATED = "initiated"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class OtpPolicy:
    """Tunable limits of the OTP lifecycle."""

    code_length: int = 6
    ttl: timedelta = timedelta(minutes=5)
    cooldown: timedelta = timedelta(minutes=2)
    max_attempts: int = 3


@dataclass
class Device:
    id: str
    is_active: bool = True
    customer_id: str | None = None
    device_fingerprint: str | None = None
    device_name: str | None = None
    device_type: str | None = None
    os: str | None = None
    os_version: str | None = None
    ip: str | None = None
    last_used_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class Block:
    scope: BlockScope
    value: str
    active: bool = True
    expires_at: datetime | None = None
    reason: str | None = None
    source: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None

    def is_active_at(self, now: datetime) -> bool:
        """A block applies while active and not past its optional expiry."""
        return self.active and (self.expires_at is None or self.expires_at > now)


@dataclass
class RegistrationToken:
    phone: str
    email: str
    device_id: str
    customer_id: str
    token_hash: str
    expires_at: datetime
    created_at: datetime
    max_attempts: int
    token_type: str = "sms"
    device_fingerprint: str | None = None
    ip: str | None = None
    status: TokenStatus = TokenStatus.PENDING
    attempts: int = 0
    verified_at: datetime | None = None
    id: str = field(default_factory=new_id)


@dataclass
class Customer:
    phone: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    device_id: str | None = None
    is_active: bool = False
    role: str = "customer"
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Account:
    customer_id: str
    account_type: str = "EVERYDAY"
    plan: str = "BASIC"
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None


@dataclass
class RegistrationAttempt:
    action: AttemptAction
    result: AttemptResult
    phone: str | None = None
    email: str | None = None
    ip: str | None = None
    device_id: str | None = None
    reason: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None


@dataclass
class SmsEvent:
    phone: str
    message: str
    direction: str = "outbound"
    status: str = "sent"
    device_id: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None


@dataclass(frozen=True)
class AccessCredential:
    """Access token issued to an activated customer."""

    token: str
    expires_in: int
