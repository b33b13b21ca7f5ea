"""
Integration tests for the complete registration flow on PostgreSQL.

Tests the full device -> register -> resend -> verify lifecycle through
the domain services and the HTTP API with a real database:
- Pending rows after registration
- Cooldown and rotation
- Attempt counting, device blocking and durable failures
- Atomic activation
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresRegistrationStore
from src.api.dependencies import get_dispatcher, get_store
from src.api.main import app
from src.domain.exceptions import (
    CooldownActive,
    DeviceBlocked,
    InvalidOtp,
    TokenNotFoundOrExpired,
    TooManyAttempts,
)
from src.domain.lifecycle import TokenStatus
from src.domain.models import BlockScope
from src.domain.notifications import NotificationDispatcher

pytestmark = pytest.mark.integration

PHONE = "+15550100"
EMAIL = "ada@example.com"


def wrong(code: str) -> str:
    return str((int(code) + 1) % 10 ** len(code)).zfill(len(code))


def fetch_token(pool: ConnectionPool, customer_id: str) -> dict:
    with pool.connection() as conn, conn.cursor() as cursor:
        cursor.execute(
            "SELECT status, attempts, created_at, expires_at, verified_at, token_hash "
            "FROM registration_tokens WHERE customer_id = %s",
            (customer_id,),
        )
        status, attempts, created_at, expires_at, verified_at, token_hash = cursor.fetchone()
    return {
        "status": status,
        "attempts": attempts,
        "created_at": created_at,
        "expires_at": expires_at,
        "verified_at": verified_at,
        "token_hash": token_hash,
    }


def count(pool: ConnectionPool, sql: str, params: tuple = ()) -> int:
    with pool.connection() as conn:
        return conn.execute(sql, params).fetchone()[0]


class TestRegistrationLifecycle:
    def test_register_creates_pending_token(self, registered, pg_pool, clock) -> None:
        """Registration leaves an inactive customer and a pending token."""
        token = fetch_token(pg_pool, registered)
        assert token["status"] == TokenStatus.PENDING.value
        assert token["attempts"] == 0
        assert token["created_at"] == clock()
        assert count(pg_pool, "SELECT count(*) FROM customers WHERE is_active") == 0

    def test_verify_activates_customer(
        self, verification_service, registered, pg_pool, sms_sender, clock
    ) -> None:
        """The correct code activates the customer and opens an account."""
        result = verification_service.verify(sms_sender.last_code, "device-1", registered, phone=PHONE)

        assert result.customer_id == registered
        assert result.access_token
        assert count(pg_pool, "SELECT count(*) FROM customers WHERE id = %s AND is_active", (registered,)) == 1
        assert count(pg_pool, "SELECT count(*) FROM accounts WHERE customer_id = %s", (registered,)) == 1
        token = fetch_token(pg_pool, registered)
        assert token["status"] == TokenStatus.VERIFIED.value
        assert token["verified_at"] == clock()

    def test_three_wrong_codes_block_device(
        self, verification_service, registration_service, registered, pg_pool, sms_sender
    ) -> None:
        """Failures are committed even though each request errors."""
        bad = wrong(sms_sender.last_code)
        for expected in (InvalidOtp, InvalidOtp, TooManyAttempts):
            with pytest.raises(expected):
                verification_service.verify(bad, "device-1", registered, phone=PHONE)

        assert fetch_token(pg_pool, registered)["attempts"] == 3
        assert (
            count(
                pg_pool,
                "SELECT count(*) FROM blocks WHERE scope = %s AND value = %s AND active",
                (BlockScope.DEVICE.value, "device-1"),
            )
            == 1
        )
        assert (
            count(pg_pool, "SELECT count(*) FROM registration_attempts WHERE result = 'failed'")
            == 3
        )

        with pytest.raises(DeviceBlocked):
            verification_service.verify(sms_sender.last_code, "device-1", registered, phone=PHONE)
        with pytest.raises(DeviceBlocked):
            registration_service.register(PHONE, EMAIL, "device-1", "Ada", "Lovelace", "pw-12345678")

    def test_resend_cooldown_then_rotation(
        self, resend_service, verification_service, registered, pg_pool, sms_sender, clock
    ) -> None:
        """Resend is refused inside the cooldown, then rotates the code."""
        before = fetch_token(pg_pool, registered)
        old_code = sms_sender.last_code

        clock.advance(seconds=30)
        with pytest.raises(CooldownActive) as exc_info:
            resend_service.resend(registered, PHONE, EMAIL, "device-1")
        assert exc_info.value.retry_after == before["created_at"] + resend_service.policy.cooldown
        assert fetch_token(pg_pool, registered) == before

        clock.advance(seconds=100)
        result = resend_service.resend(registered, PHONE, EMAIL, "device-1")
        after = fetch_token(pg_pool, registered)
        assert after["expires_at"] == result.expires_at
        assert after["created_at"] == before["created_at"]
        assert count(pg_pool, "SELECT count(*) FROM sms_events") == 2

        new_code = sms_sender.last_code
        if new_code != old_code:
            with pytest.raises(InvalidOtp):
                verification_service.verify(old_code, "device-1", registered, phone=PHONE)
        assert verification_service.verify(new_code, "device-1", registered, phone=PHONE)

    def test_second_verify_not_found(self, verification_service, registered, sms_sender) -> None:
        code = sms_sender.last_code
        verification_service.verify(code, "device-1", registered, email=EMAIL)
        with pytest.raises(TokenNotFoundOrExpired):
            verification_service.verify(code, "device-1", registered, email=EMAIL)


class TestAtomicActivation:
    def test_failed_credential_rolls_back(
        self, verification_service, registered, pg_pool, sms_sender
    ) -> None:
        class BrokenIssuer:
            def issue(self, customer):
                raise RuntimeError("signing key unavailable")

        verification_service.issuer = BrokenIssuer()
        with pytest.raises(RuntimeError):
            verification_service.verify(sms_sender.last_code, "device-1", registered, phone=PHONE)

        assert count(pg_pool, "SELECT count(*) FROM customers WHERE is_active") == 0
        assert count(pg_pool, "SELECT count(*) FROM accounts") == 0
        assert fetch_token(pg_pool, registered)["status"] == TokenStatus.PENDING.value


@pytest.fixture
def api(
    pg_store: PostgresRegistrationStore, dispatcher: NotificationDispatcher
) -> Generator[TestClient, None, None]:
    """API client bound to the test database; the lifespan is not run."""
    app.dependency_overrides[get_store] = lambda: pg_store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestHttpFlow:
    def test_device_register_verify_profile(self, api: TestClient, sms_sender) -> None:
        device_id = api.post("/v1/devices", json={"deviceFingerprint": "fp"}).json()["id"]

        response = api.post(
            "/v1/registration/init",
            json={
                "phone": PHONE,
                "email": EMAIL,
                "deviceId": device_id,
                "firstName": "Ada",
                "lastName": "Lovelace",
                "password": "correct-horse",
            },
        )
        assert response.status_code == 201
        customer_id = response.json()["customerId"]

        response = api.post(
            "/v1/registration/verify",
            json={
                "email": EMAIL,
                "otp": sms_sender.last_code,
                "customerId": customer_id,
                "deviceId": device_id,
            },
        )
        assert response.status_code == 201
        access_token = response.json()["accessToken"]

        profile = api.get("/v1/customers/me", headers={"Authorization": f"Bearer {access_token}"})
        assert profile.status_code == 200
        assert profile.json()["customerId"] == customer_id
