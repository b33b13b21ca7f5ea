"""
Domain layer - Pure business logic with zero framework imports.

This package contains the OTP lifecycle engine for customer registration:
token issuance, cooldown-gated resend, bounded verification attempts,
auto-blocking and atomic account activation. It defines its own port
interfaces for infrastructure abstraction, ensuring true hexagonal
architecture decoupling.
"""

from .devices import DeviceService
from .exceptions import (
    AlreadyRegistered,
    Blocked,
    CooldownActive,
    DeviceBlocked,
    DeviceInvalid,
    EmailBlocked,
    ErrorCode,
    IllegalTransition,
    InvalidOtp,
    NotificationFailed,
    PhoneBlocked,
    RegistrationError,
    TokenNotFound,
    TokenNotFoundOrExpired,
    TooManyAttempts,
    TransactionFailed,
    ValidationError,
)
from .lifecycle import TokenEvent, TokenStatus, effective_status, transition
from .models import OtpPolicy
from .notifications import NotificationDispatcher
from .ports import RegistrationStore, Repositories
from .registration import RegistrationReceipt, RegistrationService
from .resend import ResendResult, ResendService
from .verification import VerificationResult, VerificationService, VerifyResult

__all__ = [
    "AlreadyRegistered",
    "Blocked",
    "CooldownActive",
    "DeviceBlocked",
    "DeviceService",
    "DeviceInvalid",
    "EmailBlocked",
    "ErrorCode",
    "IllegalTransition",
    "InvalidOtp",
    "NotificationDispatcher",
    "NotificationFailed",
    "OtpPolicy",
    "PhoneBlocked",
    "RegistrationError",
    "RegistrationReceipt",
    "RegistrationService",
    "RegistrationStore",
    "Repositories",
    "ResendResult",
    "ResendService",
    "TokenEvent",
    "TokenNotFound",
    "TokenNotFoundOrExpired",
    "TokenStatus",
    "TooManyAttempts",
    "TransactionFailed",
    "ValidationError",
    "VerificationResult",
    "VerificationService",
    "VerifyResult",
    "effective_status",
    "transition",
]
