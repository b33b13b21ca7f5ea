"""
Registration domain service - token creation path.

A registration request validates the device and the blocklist, sends a
fresh OTP over SMS and email, and only then opens one transaction that
writes the audit attempt, the inactive customer, the pending token and
the SMS event. A delivery failure therefore leaves no rows behind.

The customer stays inactive until VerificationService activates it.
"""

import logging
from dataclasses import dataclass

import bcrypt

from .exceptions import AlreadyRegistered, ValidationError
from .gatekeeping import check_request
from .lifecycle import TokenStatus
from .models import (
    AttemptAction,
    AttemptResult,
    Customer,
    OtpPolicy,
    RegistrationAttempt,
    RegistrationToken,
    SmsEvent,
    utcnow,
)
from .notifications import NotificationDispatcher
from .ports import Clock, OtpGenerator, OtpHasher, RegistrationStore

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    """Strip surrounding whitespace; E.164 formatting is the caller's job."""
    return phone.strip()


@dataclass(frozen=True)
class RegistrationReceipt:
    customer_id: str


@dataclass
class RegistrationService:
    """
    Domain service for customer registration.

    Orchestrates gatekeeping, code generation, delivery, password hashing
    and the atomic creation of the pending registration.
    """

    store: RegistrationStore
    dispatcher: NotificationDispatcher
    generator: OtpGenerator
    hasher: OtpHasher
    policy: OtpPolicy = OtpPolicy()
    clock: Clock = utcnow
    bcrypt_cost: int = 10

    def register(
        self,
        phone: str,
        email: str,
        device_id: str,
        first_name: str,
        last_name: str,
        password: str,
        ip: str | None = None,
    ) -> RegistrationReceipt:
        """
        Register a new, inactive customer and send them a verification code.

        Returns:
            Receipt holding the new customer id

        Raises:
            ValidationError: If a required field is empty
            DeviceInvalid, DeviceBlocked, PhoneBlocked, EmailBlocked: Gatekeeping
            AlreadyRegistered: If an active customer owns the phone or email
            NotificationFailed: If SMS or email delivery fails
            TransactionFailed: If the store cannot commit
        """
        phone = normalize_phone(phone or "")
        email = normalize_email(email or "")
        if not all((phone, email, device_id, first_name, last_name, password)):
            raise ValidationError(
                "Missing required fields: phone, email, deviceId, firstName, lastName, password"
            )

        now = self.clock()

        with self.store.transaction() as repos:
            device = check_request(repos, now, device_id, phone=phone, email=email)
            if repos.customers.find_active_by_contact(phone, email) is not None:
                logger.warning("Registration for an already active customer: %s", email)
                raise AlreadyRegistered()

        code = self.generator.generate()
        token_hash = self.hasher.hash(code)

        self.dispatcher.send_otp(phone, email, code)

        customer = Customer(
            phone=phone,
            email=email,
            password_hash=self._hash_password(password),
            first_name=first_name,
            last_name=last_name,
            device_id=device_id,
            is_active=False,
            created_at=now,
            updated_at=now,
        )
        token = RegistrationToken(
            phone=phone,
            email=email,
            device_id=device_id,
            customer_id=customer.id,
            token_hash=token_hash,
            expires_at=now + self.policy.ttl,
            created_at=now,
            max_attempts=self.policy.max_attempts,
            device_fingerprint=device.device_fingerprint,
            ip=ip,
            status=TokenStatus.PENDING,
        )

        with self.store.transaction() as repos:
            # One pending token per (phone, email, device): retire older ones
            superseded = repos.tokens.expire_pending(phone, email, device_id)
            if superseded:
                logger.info("Expired %d superseded token(s) for %s", superseded, email)

            repos.attempts.add(
                RegistrationAttempt(
                    action=AttemptAction.SEND_TOKEN,
                    result=AttemptResult.INITIATED,
                    phone=phone,
                    email=email,
                    ip=ip,
                    device_id=device_id,
                    created_at=now,
                )
            )
            repos.customers.add(customer)
            repos.tokens.add(token)
            repos.sms_events.add(
                SmsEvent(phone=phone, message="OTP sent", device_id=device_id, created_at=now)
            )

        logger.info(
            "Registration token created and OTP sent: token=%s customer=%s", token.id, customer.id
        )
        return RegistrationReceipt(customer_id=customer.id)

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
