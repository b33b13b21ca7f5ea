"""
OTP code generation and hashing.

Codes come from the secrets module and are kept as strings so leading
zeros survive. Only an HMAC-SHA256 digest keyed with a server secret is
stored; a plain fast hash of a 6-digit code can be reversed by
enumerating all 10^6 candidates, a keyed digest cannot without the key.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class NumericOtpGenerator:
    """Implements OtpGenerator with cryptographic randomness."""

    length: int = 6

    def generate(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.length))


@dataclass(frozen=True)
class HmacOtpHasher:
    """Implements OtpHasher with HMAC-SHA256."""

    key: str

    def hash(self, code: str) -> str:
        return hmac.new(self.key.encode(), code.encode(), hashlib.sha256).hexdigest()

    def matches(self, code: str, digest: str) -> bool:
        return secrets.compare_digest(self.hash(code).encode(), digest.encode())
