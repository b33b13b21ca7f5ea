"""
API v1 routes.

Defines REST endpoints for customer registration, OTP verification and
resend. Domain errors propagate to the handler in src.api.errors.
"""

from fastapi import APIRouter, Depends, Request, status

from src.api.dependencies import (
    get_current_customer,
    get_device_service,
    get_registration_service,
    get_resend_service,
    get_verification_service,
)
from src.api.models import (
    CustomerProfileResponse,
    DeviceCreateRequest,
    DeviceResponse,
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
    ResendRequest,
    ResendResponse,
    VerifyRequest,
    VerifyResponse,
)
from src.domain.devices import DeviceService
from src.domain.models import Customer
from src.domain.registration import RegistrationService
from src.domain.resend import ResendService
from src.domain.verification import VerificationService

router = APIRouter(tags=["v1"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post(
    "/registration/init",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or unknown device"},
        403: {"model": ErrorResponse, "description": "Device, phone or email blocked"},
        409: {"model": ErrorResponse, "description": "Customer already registered"},
        502: {"model": ErrorResponse, "description": "OTP could not be delivered"},
    },
    summary="Start customer registration",
    description="Create an inactive customer bound to a device and send a one-time "
    "password by SMS and email.",
)
def register(
    request_data: RegisterRequest,
    request: Request,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    """
    Register a new customer and send an OTP.

    - **phone**, **email**: Contact details the code is sent to
    - **deviceId**: A device previously created via /v1/devices
    - **password**: Password (minimum 8 characters)
    """
    receipt = service.register(
        phone=request_data.phone,
        email=request_data.email,
        device_id=request_data.device_id,
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        password=request_data.password,
        ip=_client_ip(request),
    )
    return RegisterResponse(customer_id=receipt.customer_id)


@router.post(
    "/registration/verify",
    response_model=VerifyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired OTP"},
        403: {"model": ErrorResponse, "description": "Blocked or too many attempts"},
        500: {"model": ErrorResponse, "description": "Activation could not be committed"},
    },
    summary="Verify OTP and activate the customer",
)
def verify(
    request_data: VerifyRequest,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
) -> VerifyResponse:
    """
    Verify the one-time password.

    On success the customer is activated, an account is opened and an
    access token is returned. Each wrong code counts towards the attempt
    limit; reaching it blocks the device.
    """
    result = service.verify(
        otp=request_data.otp,
        device_id=request_data.device_id,
        customer_id=request_data.customer_id,
        phone=request_data.phone,
        email=request_data.email,
        ip=_client_ip(request),
    )
    return VerifyResponse(
        customer_id=result.customer_id,
        access_token=result.access_token,
        expires_in=result.expires_in,
    )


@router.post(
    "/otp/resend",
    response_model=ResendResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Device, phone or email blocked"},
        404: {"model": ErrorResponse, "description": "No pending registration"},
        429: {"model": ErrorResponse, "description": "Cooldown period active"},
        502: {"model": ErrorResponse, "description": "OTP could not be delivered"},
    },
    summary="Resend a new OTP",
)
def resend(
    request_data: ResendRequest,
    service: ResendService = Depends(get_resend_service),
) -> ResendResponse:
    result = service.resend(
        customer_id=request_data.customer_id,
        phone=request_data.phone,
        email=request_data.email,
        device_id=request_data.device_id,
    )
    return ResendResponse(is_new=result.is_new, expires_at=result.expires_at)


@router.post(
    "/devices",
    response_model=DeviceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a device",
)
def create_device(
    request_data: DeviceCreateRequest,
    request: Request,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    device = service.register_device(
        device_fingerprint=request_data.device_fingerprint,
        device_name=request_data.device_name,
        device_type=request_data.device_type,
        os=request_data.os,
        os_version=request_data.os_version,
        ip=_client_ip(request),
    )
    return DeviceResponse(
        id=device.id,
        device_fingerprint=device.device_fingerprint,
        is_active=device.is_active,
        created_at=device.created_at,
    )


@router.get(
    "/customers/me",
    response_model=CustomerProfileResponse,
    responses={401: {"description": "Missing, invalid or expired access token"}},
    summary="Current customer profile",
)
def get_profile(customer: Customer = Depends(get_current_customer)) -> CustomerProfileResponse:
    return CustomerProfileResponse(
        customer_id=customer.id,
        phone=customer.phone,
        email=customer.email,
        first_name=customer.first_name,
        last_name=customer.last_name,
        device_id=customer.device_id,
    )
