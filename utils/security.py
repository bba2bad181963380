"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Opaque one-time tokens (password reset, email verification) and their digests
- JTI generation for token identifiers
- Duration parsing for token lifetimes ("15m", "7d", 3600)
"""
from __future__ import annotations

import hashlib
import re
import secrets
import uuid
from datetime import timedelta

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$", re.IGNORECASE)
_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


class PasswordHasher:
    """Password hashing capability: ``hash`` and ``verify`` over argon2.

    Cost parameters are passed in so tests can use cheap settings.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = _Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """ Verify a plaintext password using argon2
        """
        try:
            return self._ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def burn(self, password: str) -> None:
        """Run one verification against a throwaway hash.

        Used when the account does not exist so the response takes as long
        as a real password check.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self._ph.hash(secrets.token_hex(16))
        self.verify(password, self._dummy_hash)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def generate_opaque_token() -> str:
    """Random 256-bit token, hex encoded, for reset and verification links."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest. Tokens are stored only in this form."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def parse_duration(value) -> timedelta:
    """
    Accept a timedelta, a number of seconds, or a string like "15m", "7d", "3600".
    Raises ValueError for anything else.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            amount, unit = match.groups()
            return timedelta(seconds=int(amount) * _UNITS[unit.lower()])
    raise ValueError(f"Invalid duration: {value!r}")
