"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.auth.jwt_issuer import InvalidCredential, JwtCredentialIssuer
from src.adapters.notification.console import ConsoleEmailSender, ConsoleSmsSender
from src.adapters.notification.http import HttpSmsSender
from src.config.settings import Settings, get_settings
from src.domain.devices import DeviceService
from src.domain.models import Customer, OtpPolicy
from src.domain.notifications import NotificationDispatcher
from src.domain.otp import HmacOtpHasher, NumericOtpGenerator
from src.domain.ports import RegistrationStore
from src.domain.registration import RegistrationService
from src.domain.resend import ResendService
from src.domain.verification import VerificationService

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_store(request: Request) -> RegistrationStore:
    """
    Get the registration store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


def get_policy(settings: Settings = Depends(get_settings)) -> OtpPolicy:
    return OtpPolicy(
        code_length=settings.otp_length,
        ttl=timedelta(seconds=settings.otp_ttl_seconds),
        cooldown=timedelta(seconds=settings.resend_cooldown_seconds),
        max_attempts=settings.max_attempts,
    )


def get_hasher(settings: Settings = Depends(get_settings)) -> HmacOtpHasher:
    return HmacOtpHasher(key=settings.otp_hash_key)


def get_generator(policy: OtpPolicy = Depends(get_policy)) -> NumericOtpGenerator:
    return NumericOtpGenerator(length=policy.code_length)


def get_dispatcher(settings: Settings = Depends(get_settings)) -> NotificationDispatcher:
    """Pick the SMS provider from settings; email always goes to the console."""
    if settings.sms_provider == "http":
        sms_sender = HttpSmsSender(url=settings.sms_http_url, auth_token=settings.sms_http_token or None)
    else:
        sms_sender = ConsoleSmsSender()
    return NotificationDispatcher(sms_sender=sms_sender, email_sender=_email_sender)


def get_issuer(settings: Settings = Depends(get_settings)) -> JwtCredentialIssuer:
    return JwtCredentialIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.access_token_ttl_seconds,
    )


def get_registration_service(
    store: RegistrationStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    generator: NumericOtpGenerator = Depends(get_generator),
    hasher: HmacOtpHasher = Depends(get_hasher),
    policy: OtpPolicy = Depends(get_policy),
    settings: Settings = Depends(get_settings),
) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the store, notification dispatcher and OTP primitives.
    """
    return RegistrationService(
        store=store,
        dispatcher=dispatcher,
        generator=generator,
        hasher=hasher,
        policy=policy,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_resend_service(
    store: RegistrationStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    generator: NumericOtpGenerator = Depends(get_generator),
    hasher: HmacOtpHasher = Depends(get_hasher),
    policy: OtpPolicy = Depends(get_policy),
) -> ResendService:
    return ResendService(
        store=store, dispatcher=dispatcher, generator=generator, hasher=hasher, policy=policy
    )


def get_verification_service(
    store: RegistrationStore = Depends(get_store),
    hasher: HmacOtpHasher = Depends(get_hasher),
    issuer: JwtCredentialIssuer = Depends(get_issuer),
    policy: OtpPolicy = Depends(get_policy),
) -> VerificationService:
    return VerificationService(store=store, hasher=hasher, issuer=issuer, policy=policy)


def get_device_service(store: RegistrationStore = Depends(get_store)) -> DeviceService:
    return DeviceService(store=store)


# Bearer security scheme for OpenAPI documentation
http_bearer = HTTPBearer()


def get_current_customer(
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer),
    issuer: JwtCredentialIssuer = Depends(get_issuer),
    store: RegistrationStore = Depends(get_store),
) -> Customer:
    """
    Resolve the bearer access token to an active customer.

    FastAPI's HTTPBearer rejects a missing or non-Bearer Authorization
    header before this runs.

    Raises:
        HTTPException: 401 if the token is invalid or the customer is
            unknown or not yet active
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired access token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = issuer.decode(credentials.credentials)
    except InvalidCredential:
        raise unauthorized from None

    with store.transaction() as repos:
        customer = repos.customers.get(claims["sub"])

    if customer is None or not customer.is_active:
        raise unauthorized
    return customer
