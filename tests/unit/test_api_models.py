"""
Unit tests for API request/response models.

Tests Pydantic model validation and the camelCase wire format.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.api.models import (
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    ResendRequest,
    ResendResponse,
    VerifyRequest,
    VerifyResponse,
)

REGISTER_BODY = {
    "phone": "+15550100",
    "email": "ada@example.com",
    "deviceId": "device-1",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "password": "secure123",
}


class TestRegisterRequest:
    """Tests for RegisterRequest model."""

    def test_accepts_camel_case(self) -> None:
        request = RegisterRequest.model_validate(REGISTER_BODY)
        assert request.device_id == "device-1"
        assert request.first_name == "Ada"

    def test_accepts_snake_case(self) -> None:
        """populate_by_name lets Python callers use field names."""
        request = RegisterRequest(
            phone="+1", email="a@example.com", device_id="d", first_name="A", last_name="B",
            password="secure123",
        )
        assert request.device_id == "d"

    def test_invalid_email_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest.model_validate({**REGISTER_BODY, "email": "not-an-email"})
        assert "email" in str(exc_info.value)

    def test_password_minimum_length(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest.model_validate({**REGISTER_BODY, "password": "short"})
        assert "password" in str(exc_info.value)

    def test_blank_phone_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest.model_validate({**REGISTER_BODY, "phone": "   "})

    @pytest.mark.parametrize("field", ["phone", "deviceId", "firstName", "lastName"])
    def test_required_fields(self, field: str) -> None:
        body = {k: v for k, v in REGISTER_BODY.items() if k != field}
        with pytest.raises(ValidationError):
            RegisterRequest.model_validate(body)


class TestVerifyRequest:
    """Tests for VerifyRequest model."""

    def test_phone_only(self) -> None:
        request = VerifyRequest.model_validate(
            {"phone": "+1", "otp": "012345", "customerId": "c", "deviceId": "d"}
        )
        assert request.email is None
        assert request.otp == "012345"

    def test_email_only(self) -> None:
        request = VerifyRequest.model_validate(
            {"email": "a@example.com", "otp": "012345", "customerId": "c", "deviceId": "d"}
        )
        assert request.phone is None

    def test_contact_required(self) -> None:
        with pytest.raises(ValidationError, match="phone or email"):
            VerifyRequest.model_validate({"otp": "012345", "customerId": "c", "deviceId": "d"})

    @pytest.mark.parametrize("otp", ["12a456", "12", "", "12345678901"])
    def test_otp_must_be_digits(self, otp: str) -> None:
        with pytest.raises(ValidationError):
            VerifyRequest.model_validate(
                {"phone": "+1", "otp": otp, "customerId": "c", "deviceId": "d"}
            )


class TestResendRequest:
    def test_all_fields_required(self) -> None:
        with pytest.raises(ValidationError):
            ResendRequest.model_validate({"customerId": "c", "phone": "+1", "deviceId": "d"})


class TestResponses:
    """Responses serialize with camelCase keys."""

    def test_register_response(self) -> None:
        assert RegisterResponse(customer_id="c1").model_dump(by_alias=True) == {"customerId": "c1"}

    def test_verify_response(self) -> None:
        dumped = VerifyResponse(customer_id="c1", access_token="t", expires_in=60).model_dump(
            by_alias=True
        )
        assert dumped == {"customerId": "c1", "accessToken": "t", "expiresIn": 60}

    def test_resend_response(self) -> None:
        at = datetime(2026, 1, 15, 12, 7, tzinfo=timezone.utc)
        dumped = ResendResponse(is_new=True, expires_at=at).model_dump(mode="json", by_alias=True)
        assert dumped == {"isNew": True, "expiresAt": "2026-01-15T12:07:00Z"}

    def test_error_response_omits_retry_after(self) -> None:
        dumped = ErrorResponse(error="INVALID_OTP", message="nope").model_dump(
            by_alias=True, exclude_none=True
        )
        assert dumped == {"error": "INVALID_OTP", "message": "nope"}
