"""
AuthService: coordinates signup, signin, refresh, logout, password reset and
email verification on top of the credential store, token engine and
session manager.

Notifications go through a fire-and-forget dispatcher; a failed email never
fails the operation that triggered it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from auth_core.errors import (
    EmailTaken,
    InvalidCredentials,
    InvalidToken,
    StoreError,
    UserNotFound,
    WeakCredential,
)
from auth_core.sessions import SessionManager, TokenPair, access_claims_for
from auth_core.tokens import TokenEngine, VerifiedClaims
from models.base_model import utcnow
from utils.security import PasswordHasher, generate_opaque_token

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIALS = "@$!%*?&#^()-_+=."
_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "must contain a lower-case letter"),
    (re.compile(r"[A-Z]"), "must contain an upper-case letter"),
    (re.compile(r"\d"), "must contain a digit"),
    (re.compile("[" + re.escape(PASSWORD_SPECIALS) + "]"), f"must contain one of {PASSWORD_SPECIALS}"),
)


def password_problems(password: str) -> List[str]:
    """Return the password-policy rules `password` breaks (empty if none)."""
    if not isinstance(password, str):
        return ["must be a string"]
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"must be at least {PASSWORD_MIN_LENGTH} characters long")
    problems.extend(message for pattern, message in _PASSWORD_RULES if not pattern.search(password))
    return problems


@dataclass(frozen=True)
class AuthResult:
    user: Any
    tokens: TokenPair


class AuthService:
    def __init__(
        self,
        store,
        engine: TokenEngine,
        sessions: SessionManager,
        hasher: PasswordHasher,
        notifier,
        reset_token_ttl: timedelta = timedelta(hours=1),
    ):
        self.store = store
        self.engine = engine
        self.sessions = sessions
        self.hasher = hasher
        self.notifier = notifier
        self.reset_token_ttl = reset_token_ttl

    # -- signup / signin ----------------------------------------------------

    def signup(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        problems = password_problems(password)
        if problems:
            raise WeakCredential(problems)
        if self.store.find_by_email(email) is not None:
            raise EmailTaken()

        user = self.store.create(email, self.hasher.hash(password), name)
        tokens = self.sessions.issue_initial(user.id, access_claims_for(user))
        logger.info("User %s signed up", user.id)

        self.notifier.send_welcome(user.email, user.name)
        try:
            self._send_verification(user)
        except StoreError:
            # the account exists; verification can be requested again later
            logger.warning("Could not issue verification token for user %s", user.id)
        return AuthResult(user=user, tokens=tokens)

    def signin(self, email: str, password: str) -> AuthResult:
        user = self.store.find_by_email(email) if email else None
        if user is None:
            # keep response time the same as a wrong-password attempt
            self.hasher.burn(password or "")
            logger.info("Sign-in failed: unknown account")
            raise InvalidCredentials()
        if not self.hasher.verify(password or "", user.password_hash):
            logger.info("Sign-in failed for user %s: password mismatch", user.id)
            raise InvalidCredentials()

        tokens = self.sessions.issue_initial(user.id, access_claims_for(user))
        logger.info("User %s signed in", user.id)
        return AuthResult(user=user, tokens=tokens)

    # -- tokens -------------------------------------------------------------

    def refresh(self, refresh_token: str) -> TokenPair:
        return self.sessions.rotate(refresh_token)

    def logout(self, user_id: str, session_id: Optional[str] = None) -> None:
        """End one session when its id is known, otherwise every session."""
        if session_id:
            self.sessions.revoke_session(user_id, session_id)
        else:
            self.sessions.revoke_all(user_id)

    def logout_all(self, user_id: str) -> None:
        self.sessions.revoke_all(user_id)

    def check_access_token(self, token: str) -> Tuple[VerifiedClaims, Any]:
        """Verify an access token and confirm its subject still exists."""
        claims = self.engine.verify_access_token(token)
        user = self.store.find_by_id(claims.subject)
        if user is None:
            raise UserNotFound()
        return claims, user

    def issue_custom_token(self, claims: Mapping[str, Any], expires_in: Optional[timedelta] = None) -> str:
        """Admin tooling: sign an access token with caller-chosen claims."""
        return self.engine.issue_access_token(claims, expires_in)

    # -- profile ------------------------------------------------------------

    def get_profile(self, user_id: str):
        user = self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def list_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self.sessions.active_sessions(user_id)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> TokenPair:
        user = self.get_profile(user_id)
        if not self.hasher.verify(current_password or "", user.password_hash):
            raise InvalidCredentials()
        problems = password_problems(new_password)
        if problems:
            raise WeakCredential(problems)

        self.store.update_password(user.id, self.hasher.hash(new_password))
        self.sessions.revoke_all(user.id)
        logger.info("User %s changed password; all sessions revoked", user.id)
        return self.sessions.issue_initial(user.id, access_claims_for(user))

    # -- password reset -------------------------------------------------------

    def forgot_password(self, email: str) -> None:
        """Start a reset if the account exists. Silent either way."""
        user = self.store.find_by_email(email) if email else None
        if user is None:
            logger.info("Password reset requested for unknown account")
            return
        token = generate_opaque_token()
        self.store.set_reset_token(user.id, token, utcnow() + self.reset_token_ttl)
        self.notifier.send_password_reset(user.email, token, user.id)
        logger.info("Password reset issued for user %s", user.id)

    def reset_password(self, token: str, new_password: str) -> None:
        user = self.store.find_by_reset_token(token) if token else None
        if user is None or user.reset_token_expires_at is None or user.reset_token_expires_at <= utcnow():
            raise InvalidToken("reset_token", "Invalid or expired reset token")
        problems = password_problems(new_password)
        if problems:
            raise WeakCredential(problems)

        self.store.update_password(user.id, self.hasher.hash(new_password))
        self.sessions.revoke_all(user.id)
        logger.info("Password reset completed for user %s; all sessions revoked", user.id)

    # -- email verification ---------------------------------------------------

    def request_verification(self, user_id: str) -> None:
        user = self.get_profile(user_id)
        if user.email_verified:
            return
        self._send_verification(user)

    def verify_email(self, token: str):
        user = self.store.mark_email_verified(token) if token else None
        if user is None:
            raise InvalidToken("verification_token", "Invalid verification token")
        logger.info("Email verified for user %s", user.id)
        return user

    def _send_verification(self, user) -> None:
        token = generate_opaque_token()
        self.store.set_verification_token(user.id, token)
        self.notifier.send_verification(user.email, token, user.id)
