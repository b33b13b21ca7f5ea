"""
JWT credential adapter - Implements the CredentialIssuer protocol with PyJWT.

Access tokens carry the customer id as subject plus the email and device
of the registration. Tokens are only ever issued to active customers;
decode() is used by the API to authenticate bearer requests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from src.domain.models import AccessCredential, Customer

logger = logging.getLogger(__name__)


class InvalidCredential(Exception):
    """Bearer token is malformed, tampered with, or expired."""


@dataclass
class JwtCredentialIssuer:
    secret: str
    algorithm: str = "HS256"
    ttl_seconds: int = 3600

    def issue(self, customer: Customer) -> AccessCredential:
        if not customer.is_active:
            raise ValueError(f"Refusing to issue a credential to inactive customer {customer.id}")

        now = datetime.now(timezone.utc)
        payload = {
            "sub": customer.id,
            "email": customer.email,
            "deviceId": customer.device_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.ttl_seconds)).timestamp()),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return AccessCredential(token=token, expires_in=self.ttl_seconds)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Validate signature and expiry.

        Raises:
            InvalidCredential: If the token cannot be trusted
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidCredential("Access token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("Rejected access token: %s", e)
            raise InvalidCredential("Invalid access token") from e
