"""
Registration token lifecycle - explicit state machine.

States:
- PENDING: Code issued, awaiting verification (initial state)
- VERIFIED: Code matched; customer activated in the same transaction
- COMPLETED: Registration handed over to the broader application
- EXPIRED: Superseded by a newer registration, or TTL elapsed
- BLOCKED: Attempt limit reached; the device carries an active block

Valid Transitions:
    PENDING  -> VERIFIED   (verify: hash match within attempt limit)
    PENDING  -> PENDING    (rotate: resend after cooldown, same token id)
    PENDING  -> EXPIRED    (expire: superseded by a new registration)
    PENDING  -> BLOCKED    (block: attempt limit reached)
    VERIFIED -> COMPLETED  (complete)

Every other (state, event) pair raises IllegalTransition.

EXPIRED and BLOCKED are usually implicit: a pending token whose expiry has
passed simply stops matching lookups, and a device block rejects every flow
before the token is consulted. effective_status() derives both implicit
states so callers never compare timestamps and status strings by hand.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import IllegalTransition

if TYPE_CHECKING:
    from .models import RegistrationToken


class TokenStatus(str, Enum):
    """Persisted status of a registration token."""

    PENDING = "pending"
    VERIFIED = "verified"
    COMPLETED = "completed"
    EXPIRED = "expired"
    BLOCKED = "blocked"


class TokenEvent(str, Enum):
    """Events that drive a registration token between states."""

    VERIFY = "verify"
    ROTATE = "rotate"
    EXPIRE = "expire"
    BLOCK = "block"
    COMPLETE = "complete"


_TRANSITIONS: dict[tuple[TokenStatus, TokenEvent], TokenStatus] = {
    (TokenStatus.PENDING, TokenEvent.VERIFY): TokenStatus.VERIFIED,
    (TokenStatus.PENDING, TokenEvent.ROTATE): TokenStatus.PENDING,
    (TokenStatus.PENDING, TokenEvent.EXPIRE): TokenStatus.EXPIRED,
    (TokenStatus.PENDING, TokenEvent.BLOCK): TokenStatus.BLOCKED,
    (TokenStatus.VERIFIED, TokenEvent.COMPLETE): TokenStatus.COMPLETED,
}


def transition(status: TokenStatus, event: TokenEvent) -> TokenStatus:
    """
    Return the state reached by applying event to status.

    Raises:
        IllegalTransition: If the state machine does not allow the move
    """
    try:
        return _TRANSITIONS[(TokenStatus(status), TokenEvent(event))]
    except KeyError:
        raise IllegalTransition(TokenStatus(status).value, TokenEvent(event).value) from None


def effective_status(
    token: "RegistrationToken", now: datetime, device_blocked: bool = False
) -> TokenStatus:
    """
    Persisted status with the implicit states applied.

    A pending token is reported BLOCKED while its device carries an active
    block, and EXPIRED once expires_at has passed.
    """
    if token.status == TokenStatus.PENDING:
        if device_blocked:
            return transition(TokenStatus.PENDING, TokenEvent.BLOCK)
        if token.expires_at <= now:
            return transition(TokenStatus.PENDING, TokenEvent.EXPIRE)
    return TokenStatus(token.status)
