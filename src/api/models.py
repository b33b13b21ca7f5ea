"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model: camelCase aliases, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(ApiModel):
    """Request model for registration init."""

    phone: str = Field(..., min_length=1, pattern=r"\S", description="Phone number (E.164)")
    email: EmailStr
    device_id: str = Field(..., min_length=1, description="Registered device id")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, description="Customer password (min 8 characters)")


class RegisterResponse(ApiModel):
    """Response model for successful registration init."""

    customer_id: str


class VerifyRequest(ApiModel):
    """Request model for OTP verification. Phone or email is required."""

    phone: str | None = Field(default=None, pattern=r"\S", description="Phone number used at registration")
    email: EmailStr | None = None
    otp: str = Field(
        ...,
        min_length=4,
        max_length=10,
        pattern=r"^\d+$",
        description="One-time password received by the customer",
    )
    customer_id: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_contact(self) -> "VerifyRequest":
        if not self.phone and not self.email:
            raise ValueError("Either phone or email must be provided")
        return self


class VerifyResponse(ApiModel):
    """Response model for successful verification."""

    customer_id: str
    access_token: str
    expires_in: int


class ResendRequest(ApiModel):
    """Request model for OTP resend."""

    customer_id: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, pattern=r"\S")
    email: EmailStr
    device_id: str = Field(..., min_length=1)


class ResendResponse(ApiModel):
    """Response model for a rotated OTP."""

    is_new: bool
    expires_at: datetime


class DeviceCreateRequest(ApiModel):
    """Request model for device registration."""

    device_fingerprint: str | None = None
    device_name: str | None = None
    device_type: str | None = None
    os: str | None = None
    os_version: str | None = None


class DeviceResponse(ApiModel):
    id: str
    device_fingerprint: str | None
    is_active: bool
    created_at: datetime


class CustomerProfileResponse(ApiModel):
    customer_id: str
    phone: str
    email: str
    first_name: str
    last_name: str
    device_id: str | None


class ErrorResponse(ApiModel):
    """Standard error response model."""

    error: str
    message: str
    retry_after: datetime | None = None
