"""
Verification engine - OTP check, attempt limiting and atomic activation.

Verification runs in a single store transaction holding the token row
lock (SELECT FOR UPDATE), so two concurrent verifies cannot both succeed
and a resend cannot rotate the token mid-check.

Failure bookkeeping is durable: the attempt increment, the failed-attempt
audit row and the auto-block commit before the error reaches the caller.
Activation is all-or-nothing: token verified, customer active, account
created, success attempt recorded and credential issued, or none of it.

Outcomes by scenario:
- SUCCESS: code matched, customer activated
- NOT_FOUND: no pending, unexpired token for device/customer/contact
- INVALID_CODE: mismatch below the attempt limit
- LOCKED: attempt limit reached; device block created
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import (
    InvalidOtp,
    TokenNotFoundOrExpired,
    TooManyAttempts,
    TransactionFailed,
    ValidationError,
)
from .gatekeeping import check_request
from .lifecycle import TokenEvent, transition
from .models import (
    AccessCredential,
    Account,
    AttemptAction,
    AttemptResult,
    Block,
    BlockScope,
    OtpPolicy,
    RegistrationAttempt,
    RegistrationToken,
    utcnow,
)
from .ports import Clock, CredentialIssuer, OtpHasher, RegistrationStore, Repositories
from .registration import normalize_email, normalize_phone

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_REASON = "OTP max attempts exceeded"
BLOCK_SOURCE = "registration"


class VerifyResult(Enum):
    """Result of a verification attempt, resolved inside the transaction."""

    SUCCESS = "success"
    INVALID_CODE = "invalid_code"
    LOCKED = "locked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class VerificationResult:
    customer_id: str
    access_token: str
    expires_in: int


@dataclass
class VerificationService:
    store: RegistrationStore
    hasher: OtpHasher
    issuer: CredentialIssuer
    policy: OtpPolicy = OtpPolicy()
    clock: Clock = utcnow

    def verify(
        self,
        otp: str,
        device_id: str,
        customer_id: str,
        phone: str | None = None,
        email: str | None = None,
        ip: str | None = None,
    ) -> VerificationResult:
        """
        Verify a submitted code and activate the customer on success.

        Returns:
            Customer id plus an access token and its lifetime in seconds

        Raises:
            ValidationError: If otp, device, customer or both contacts are missing
            DeviceInvalid, DeviceBlocked, PhoneBlocked, EmailBlocked: Gatekeeping
            TokenNotFoundOrExpired: If no active token matches
            InvalidOtp: If the code does not match (attempt recorded)
            TooManyAttempts: If the attempt limit is reached (device blocked)
            TransactionFailed: If activation could not commit (nothing persisted)
        """
        phone = normalize_phone(phone) if phone is not None else None
        email = normalize_email(email) if email is not None else None
        # A supplied but blank contact must not widen the token lookup
        if phone == "" or email == "":
            raise ValidationError("Phone and email must not be blank")
        if not otp or not device_id or not customer_id or not (phone or email):
            raise ValidationError("Missing required verification parameters")

        now = self.clock()

        with self.store.transaction() as repos:
            check_request(repos, now, device_id, phone=phone, email=email)

            token = repos.tokens.find_active(
                device_id, customer_id, now, phone=phone, email=email, for_update=True
            )
            if token is None:
                result, credential = VerifyResult.NOT_FOUND, None
            else:
                result, credential = self._check(repos, token, otp, ip)

        if result == VerifyResult.SUCCESS and credential is not None:
            logger.info("Customer activated: %s", customer_id)
            return VerificationResult(
                customer_id=customer_id,
                access_token=credential.token,
                expires_in=credential.expires_in,
            )
        if result == VerifyResult.LOCKED:
            logger.warning("OTP max attempts exceeded, device blocked: %s", device_id)
            raise TooManyAttempts()
        if result == VerifyResult.INVALID_CODE:
            logger.warning("Invalid OTP submitted: device=%s", device_id)
            raise InvalidOtp()

        logger.warning("Verification token not found or expired: device=%s", device_id)
        raise TokenNotFoundOrExpired()

    def _check(
        self, repos: Repositories, token: RegistrationToken, otp: str, ip: str | None
    ) -> tuple[VerifyResult, AccessCredential | None]:
        now = self.clock()

        # Checked before the hash so a request past the limit consumes nothing
        if token.attempts >= token.max_attempts:
            self._block_device(repos, token)
            return VerifyResult.LOCKED, None

        if not self.hasher.matches(otp, token.token_hash):
            attempts = repos.tokens.increment_attempts(token.id)
            repos.attempts.add(
                RegistrationAttempt(
                    action=AttemptAction.VERIFY_OTP,
                    result=AttemptResult.FAILED,
                    phone=token.phone,
                    email=token.email,
                    ip=ip,
                    device_id=token.device_id,
                    reason="Invalid OTP",
                    created_at=now,
                )
            )
            if attempts >= token.max_attempts:
                self._block_device(repos, token)
                return VerifyResult.LOCKED, None
            return VerifyResult.INVALID_CODE, None

        return VerifyResult.SUCCESS, self._activate(repos, token, ip)

    def _activate(
        self, repos: Repositories, token: RegistrationToken, ip: str | None
    ) -> AccessCredential:
        """
        Activation writes. Runs inside the caller's transaction; raising here
        rolls every write back.
        """
        now = self.clock()

        repos.tokens.update_status(
            token.id, transition(token.status, TokenEvent.VERIFY), verified_at=now
        )

        if not repos.customers.activate(token.customer_id, now):
            raise TransactionFailed("Customer could not be activated")

        repos.accounts.add(Account(customer_id=token.customer_id, created_at=now))
        repos.attempts.add(
            RegistrationAttempt(
                action=AttemptAction.VERIFY_OTP,
                result=AttemptResult.SUCCESS,
                phone=token.phone,
                email=token.email,
                ip=ip,
                device_id=token.device_id,
                created_at=now,
            )
        )

        customer = repos.customers.get(token.customer_id)
        if customer is None:
            raise TransactionFailed("Customer disappeared during activation")
        return self.issuer.issue(customer)

    def _block_device(self, repos: Repositories, token: RegistrationToken) -> None:
        now = self.clock()
        if repos.blocks.find_active(BlockScope.DEVICE, token.device_id, now) is not None:
            return
        repos.blocks.add(
            Block(
                scope=BlockScope.DEVICE,
                value=token.device_id,
                reason=MAX_ATTEMPTS_REASON,
                source=BLOCK_SOURCE,
                created_at=now,
            )
        )
