"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A frozen, manually advanced clock
- Recording SMS/email senders that capture delivered codes
- An in-memory registration store with a registered device
- Domain services wired against the in-memory store
- A PostgreSQL pool and store for the integration and adversarial suites
"""

import re
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.auth.jwt_issuer import JwtCredentialIssuer
from src.adapters.repository.memory import InMemoryRegistrationStore
from src.adapters.repository.postgres import PostgresRegistrationStore, run_migrations
from src.config.settings import get_settings
from src.domain.models import Device, OtpPolicy, new_id
from src.domain.notifications import NotificationDispatcher
from src.domain.otp import HmacOtpHasher, NumericOtpGenerator
from src.domain.registration import RegistrationService
from src.domain.resend import ResendService
from src.domain.verification import VerificationService

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

PHONE = "+15550100"
EMAIL = "ada@example.com"
PASSWORD = "correct-horse-battery"

_CODE_PATTERN = re.compile(r"(\d+)$")


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingSmsSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_sms(self, phone: str, message: str) -> None:
        self.sent.append((phone, message))

    @property
    def last_code(self) -> str:
        match = _CODE_PATTERN.search(self.sent[-1][1])
        assert match is not None
        return match.group(1)


class RecordingEmailSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_email(self, email: str, message: str) -> None:
        self.sent.append((email, message))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def policy() -> OtpPolicy:
    return OtpPolicy()


@pytest.fixture
def store() -> InMemoryRegistrationStore:
    return InMemoryRegistrationStore()


@pytest.fixture
def device(store: InMemoryRegistrationStore, clock: FrozenClock) -> Device:
    """An active device already known to the store."""
    device = Device(id="device-1", device_fingerprint="fp-abc", created_at=clock())
    with store.transaction() as repos:
        repos.devices.add(device)
    return device


@pytest.fixture
def sms_sender() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def dispatcher(
    sms_sender: RecordingSmsSender, email_sender: RecordingEmailSender
) -> NotificationDispatcher:
    return NotificationDispatcher(sms_sender=sms_sender, email_sender=email_sender)


@pytest.fixture
def hasher() -> HmacOtpHasher:
    return HmacOtpHasher(key="test-otp-key")


@pytest.fixture
def issuer() -> JwtCredentialIssuer:
    return JwtCredentialIssuer(secret="test-jwt-secret-0123456789abcdef", ttl_seconds=900)


@pytest.fixture
def registration_service(
    store: InMemoryRegistrationStore,
    dispatcher: NotificationDispatcher,
    hasher: HmacOtpHasher,
    policy: OtpPolicy,
    clock: FrozenClock,
) -> RegistrationService:
    # Minimum bcrypt cost keeps the suite fast
    return RegistrationService(
        store=store,
        dispatcher=dispatcher,
        generator=NumericOtpGenerator(length=policy.code_length),
        hasher=hasher,
        policy=policy,
        clock=clock,
        bcrypt_cost=4,
    )


@pytest.fixture
def resend_service(
    store: InMemoryRegistrationStore,
    dispatcher: NotificationDispatcher,
    hasher: HmacOtpHasher,
    policy: OtpPolicy,
    clock: FrozenClock,
) -> ResendService:
    return ResendService(
        store=store,
        dispatcher=dispatcher,
        generator=NumericOtpGenerator(length=policy.code_length),
        hasher=hasher,
        policy=policy,
        clock=clock,
    )


@pytest.fixture
def verification_service(
    store: InMemoryRegistrationStore,
    hasher: HmacOtpHasher,
    issuer: JwtCredentialIssuer,
    policy: OtpPolicy,
    clock: FrozenClock,
) -> VerificationService:
    return VerificationService(
        store=store, hasher=hasher, issuer=issuer, policy=policy, clock=clock
    )


@pytest.fixture
def registered(
    registration_service: RegistrationService, device: Device
) -> str:
    """Register the default customer on the default device; returns the customer id."""
    receipt = registration_service.register(
        phone=PHONE,
        email=EMAIL,
        device_id=device.id,
        first_name="Ada",
        last_name="Lovelace",
        password=PASSWORD,
        ip="203.0.113.7",
    )
    return receipt.customer_id


# PostgreSQL fixtures, shared by the integration and adversarial suites


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """Connection pool to the configured database; skips when it is unreachable."""
    settings = get_settings()
    if settings.database_url.startswith("memory://"):
        pytest.skip("DATABASE_URL selects the in-memory store")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=20, open=False)
    try:
        pool.open(wait=True, timeout=3.0)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def pg_store(pg_pool: ConnectionPool) -> PostgresRegistrationStore:
    """Empty PostgreSQL-backed store."""
    with pg_pool.connection() as conn:
        conn.execute(
            "TRUNCATE registration_tokens, accounts, registration_attempts, sms_events, "
            "blocks, customers, devices CASCADE"
        )
    return PostgresRegistrationStore(pg_pool)


@pytest.fixture
def pg_device(pg_store: PostgresRegistrationStore, clock: FrozenClock) -> Device:
    device = Device(id=new_id(), device_fingerprint="fp-pg", created_at=clock())
    with pg_store.transaction() as repos:
        repos.devices.add(device)
    return device
