"""
Error kinds raised by the authentication core.

Every error carries a machine-readable ``code`` so the HTTP layer (or any
other caller) can map it without string matching. Messages are safe to log;
they never contain secrets, password hashes or raw tokens.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "AUTH_ERROR"
    default_message = "Authentication error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ConfigurationError(AuthError):
    code = "CONFIGURATION_ERROR"
    default_message = "Invalid authentication configuration"


class InvalidToken(AuthError):
    """Bad signature, malformed structure, wrong token type or expiry.

    ``reason`` tells these apart for logs; callers making authorization
    decisions must treat every reason the same.
    """

    code = "INVALID_TOKEN"
    default_message = "Invalid token"

    def __init__(self, reason: str = "invalid", message: str | None = None):
        super().__init__(message)
        self.reason = reason


class TokenRevoked(AuthError):
    code = "TOKEN_REVOKED"
    default_message = "Token has been revoked"


class Malformed(AuthError):
    code = "MALFORMED_TOKEN"
    default_message = "Token is not a well-formed JWT"


class UserNotFound(AuthError):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class EmailTaken(AuthError):
    code = "EMAIL_TAKEN"
    default_message = "Email already registered"


class WeakCredential(AuthError):
    code = "WEAK_PASSWORD"
    default_message = "Password does not meet the password policy"

    def __init__(self, problems: list[str] | None = None, message: str | None = None):
        super().__init__(message)
        self.problems = problems or []


class InvalidCredentials(AuthError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class StoreError(AuthError):
    code = "STORE_ERROR"
    default_message = "Credential store unavailable"
