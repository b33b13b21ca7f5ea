"""
Resend cooldown controller.

Cooldown is measured from the creation time of the current token, not
from its expiry, and rotation keeps created_at: once the window has
passed, each resend rotates the same row. A pending token whose expiry
has already elapsed can still be resent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from .exceptions import CooldownActive, IllegalTransition, TokenNotFound, ValidationError
from .gatekeeping import check_request
from .lifecycle import TokenEvent, TokenStatus, effective_status, transition
from .models import OtpPolicy, SmsEvent, utcnow
from .notifications import NotificationDispatcher
from .ports import Clock, OtpGenerator, OtpHasher, RegistrationStore
from .registration import normalize_email, normalize_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResendResult:
    is_new: bool
    expires_at: datetime


@dataclass
class ResendService:
    store: RegistrationStore
    dispatcher: NotificationDispatcher
    generator: OtpGenerator
    hasher: OtpHasher
    policy: OtpPolicy = OtpPolicy()
    clock: Clock = utcnow

    def resend(
        self, customer_id: str, phone: str, email: str, device_id: str
    ) -> ResendResult:
        """
        Rotate the pending token and send a new code once the cooldown has passed.

        Raises:
            ValidationError: If a required field is empty
            DeviceInvalid, DeviceBlocked, PhoneBlocked, EmailBlocked: Gatekeeping
            TokenNotFound: If no pending token exists for the request
            CooldownActive: If called within the cooldown window
            NotificationFailed: If delivery fails (token left untouched)
        """
        phone = normalize_phone(phone or "")
        email = normalize_email(email or "")
        if not all((customer_id, phone, email, device_id)):
            raise ValidationError("Missing required fields: customerId, phone, email, deviceId")

        now = self.clock()
        logger.info("OTP resend requested: customer=%s device=%s", customer_id, device_id)

        with self.store.transaction() as repos:
            check_request(repos, now, device_id, phone=phone, email=email)
            token = repos.tokens.find_latest_pending(customer_id, phone, email, device_id)

        if token is None:
            logger.warning("No OTP token found: customer=%s device=%s", customer_id, device_id)
            raise TokenNotFound()

        retry_after = token.created_at + self.policy.cooldown
        if now < retry_after:
            logger.warning("OTP within cooldown period: token=%s retry_after=%s", token.id, retry_after)
            raise CooldownActive(
                retry_after,
                f"Please wait {int(self.policy.cooldown.total_seconds())} seconds "
                "before requesting a new OTP",
            )

        if effective_status(token, now) == TokenStatus.EXPIRED:
            logger.info("Reissuing code for expired token: %s", token.id)

        code = self.generator.generate()
        token_hash = self.hasher.hash(code)
        expires_at = now + self.policy.ttl

        self.dispatcher.send_otp(phone, email, code)

        with self.store.transaction() as repos:
            locked = repos.tokens.get(token.id, for_update=True)
            if locked is None:
                raise TokenNotFound()
            # A verify that won the row lock leaves nothing to rotate
            try:
                transition(locked.status, TokenEvent.ROTATE)
            except IllegalTransition:
                logger.warning("Token %s left pending before rotation", token.id)
                raise TokenNotFound() from None
            repos.tokens.rotate(token.id, token_hash, expires_at)
            repos.sms_events.add(
                SmsEvent(phone=phone, message="OTP resent", device_id=device_id, created_at=now)
            )

        logger.info("New OTP generated and sent: token=%s expires_at=%s", token.id, expires_at)
        return ResendResult(is_new=True, expires_at=expires_at)
