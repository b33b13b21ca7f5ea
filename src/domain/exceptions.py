"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

The taxonomy is closed: every failure a flow can raise is a subclass of
RegistrationError carrying a machine-readable ErrorCode and the HTTP
status the API layer renders it with.
"""

from datetime import datetime
from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error kinds surfaced to callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    DEVICE_INVALID = "DEVICE_INVALID"
    DEVICE_BLOCKED = "DEVICE_BLOCKED"
    PHONE_BLOCKED = "PHONE_BLOCKED"
    EMAIL_BLOCKED = "EMAIL_BLOCKED"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TOKEN_NOT_FOUND_OR_EXPIRED = "TOKEN_NOT_FOUND_OR_EXPIRED"
    OTP_COOLDOWN_PERIOD = "OTP_COOLDOWN_PERIOD"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    INVALID_OTP = "INVALID_OTP"
    SENDING_FAILED = "SENDING_FAILED"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    status_code: int = 400
    default_message: str = "Registration request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RegistrationError):
    """Missing or malformed input."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400
    default_message = "Missing required fields"


class DeviceInvalid(RegistrationError):
    """Device does not exist or is inactive."""

    code = ErrorCode.DEVICE_INVALID
    status_code = 400
    default_message = "Invalid or inactive device"


class Blocked(RegistrationError):
    """An identifier involved in the request has an active block."""

    status_code = 403
    scope: str = ""

    def __init__(self, value: str, message: str | None = None) -> None:
        self.value = value
        super().__init__(message)


class DeviceBlocked(Blocked):
    code = ErrorCode.DEVICE_BLOCKED
    scope = "device"
    default_message = "Your device has been blocked"


class PhoneBlocked(Blocked):
    code = ErrorCode.PHONE_BLOCKED
    scope = "phone"
    default_message = "Phone number has been blocked"


class EmailBlocked(Blocked):
    code = ErrorCode.EMAIL_BLOCKED
    scope = "email"
    default_message = "Email address has been blocked"


class AlreadyRegistered(RegistrationError):
    """Phone or email already belongs to an active customer."""

    code = ErrorCode.ALREADY_REGISTERED
    status_code = 409
    default_message = "Registration failed"


class TokenNotFound(RegistrationError):
    """No pending token exists for the resend request."""

    code = ErrorCode.TOKEN_NOT_FOUND
    status_code = 404
    default_message = "No OTP token found for this customer"


class TokenNotFoundOrExpired(RegistrationError):
    """No pending, unexpired token matches the verify request."""

    code = ErrorCode.TOKEN_NOT_FOUND_OR_EXPIRED
    status_code = 400
    default_message = "Verification token not found or expired"


class CooldownActive(RegistrationError):
    """Resend requested before the cooldown window elapsed."""

    code = ErrorCode.OTP_COOLDOWN_PERIOD
    status_code = 429
    default_message = "Please wait before requesting a new OTP"

    def __init__(self, retry_after: datetime, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class TooManyAttempts(RegistrationError):
    """Attempt limit reached; the device is now blocked."""

    code = ErrorCode.TOO_MANY_ATTEMPTS
    status_code = 403
    default_message = "Too many verification attempts"


class InvalidOtp(RegistrationError):
    """Submitted code does not match. Recoverable until the limit is hit."""

    code = ErrorCode.INVALID_OTP
    status_code = 400
    default_message = "Invalid verification code"


class NotificationFailed(RegistrationError):
    """SMS or email delivery failed before anything was persisted."""

    code = ErrorCode.SENDING_FAILED
    status_code = 502
    default_message = "Failed to send verification code"


class TransactionFailed(RegistrationError):
    """Storage failure; the transaction was rolled back in full."""

    code = ErrorCode.TRANSACTION_FAILED
    status_code = 500
    default_message = "Storage transaction failed"


class IllegalTransition(Exception):
    """A registration token was asked to make a transition its state forbids."""

    def __init__(self, status: str, event: str) -> None:
        self.status = status
        self.event = event
        super().__init__(f"Cannot apply '{event}' to token in state '{status}'")
