"""Delivery code generation and hashing.

Codes come from ``secrets`` and are stored only as scrypt digests with a
per-record random salt. Comparison goes through ``hmac.compare_digest``.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass


def generate_code(low: int = 1000, high: int = 9999) -> str:
    """Draw a numeric code uniformly from ``[low, high]``.

    Examples:
        >>> 1000 <= int(generate_code()) <= 9999
        True
    """
    if low < 0 or high < low:
        raise ValueError("code range must satisfy 0 <= low <= high")
    return str(low + secrets.randbelow(high - low + 1))


def generate_salt(num_bytes: int = 16) -> str:
    """Return a hex-encoded random salt."""
    return secrets.token_hex(num_bytes)


@dataclass(frozen=True)
class ScryptHasher:
    """scrypt key derivation with fixed cost parameters.

    The defaults (N=2**14, r=8, p=1, 64-byte output) need about 16 MiB of
    memory per derivation.
    """

    n: int = 16384
    r: int = 8
    p: int = 1
    dklen: int = 64

    def derive(self, code: str, salt: str) -> str:
        """Hex digest of ``scrypt(code, salt)``."""
        digest = hashlib.scrypt(
            code.encode("utf-8"),
            salt=salt.encode("utf-8"),
            n=self.n,
            r=self.r,
            p=self.p,
            dklen=self.dklen,
            maxmem=128 * self.r * (self.n + self.p + 2) * 2,
        )
        return digest.hex()

    def matches(self, code: str, salt: str, expected_hash: str) -> bool:
        """Constant-time check of ``code`` against a stored digest."""
        candidate = self.derive(code, salt)
        return hmac.compare_digest(candidate.encode("ascii"), expected_hash.encode("ascii"))
