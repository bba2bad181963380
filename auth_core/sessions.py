"""
Session manager: reconciles refresh-token rotation with the credential store.

A refresh token is honoured only when its signature and expiry check out AND
it is still in the user's refresh-token set. Rotation removes the presented
token and stores its replacement in a single store transaction, so two racing
rotations of the same token cannot both succeed.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from auth_core.errors import TokenRevoked, UserNotFound
from auth_core.tokens import TokenEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    session_id: str
    token_type: str = "Bearer"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "refresh_expires_in": self.refresh_expires_in,
            "session_id": self.session_id,
        }


def access_claims_for(user) -> Dict[str, Any]:
    """Application claims carried by every access token of `user`."""
    return {"sub": str(user.id), "email": user.email, "roles": list(user.roles or [])}


class SessionManager:
    def __init__(self, engine: TokenEngine, store):
        self.engine = engine
        self.store = store

    def issue_initial(self, user_id: str, claims: Optional[Mapping[str, Any]] = None) -> TokenPair:
        """Open a new session for `user_id` (signup / signin)."""
        session_id = str(uuid.uuid4())
        pair, expires_at = self._issue_pair(str(user_id), session_id, claims)
        self.store.add_refresh_token(str(user_id), pair.refresh_token, session_id, expires_at)
        logger.info("Opened session %s for user %s", session_id, user_id)
        return pair

    def rotate(self, presented_refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair.

        Raises InvalidToken (signature/expiry/type), UserNotFound, or
        TokenRevoked when the token is no longer in the user's set.
        """
        verified = self.engine.verify_refresh_token(presented_refresh_token)

        user = self.store.find_by_id(verified.subject)
        if user is None:
            raise UserNotFound()

        session_id = verified.session_id or str(uuid.uuid4())
        pair, expires_at = self._issue_pair(str(user.id), session_id, access_claims_for(user))
        rotated = self.store.rotate_refresh_token(
            str(user.id), presented_refresh_token, pair.refresh_token, session_id, expires_at
        )
        if not rotated:
            logger.warning("Refresh token reuse or revoked token for user %s (session %s)", user.id, session_id)
            raise TokenRevoked()
        return pair

    def revoke_all(self, user_id: str) -> int:
        """Forget every refresh token of the user. Idempotent."""
        removed = self.store.clear_refresh_tokens(str(user_id))
        logger.info("Revoked %d refresh token(s) for user %s", removed, user_id)
        return removed

    def revoke_session(self, user_id: str, session_id: str) -> int:
        removed = self.store.remove_session(str(user_id), session_id)
        logger.info("Revoked session %s for user %s", session_id, user_id)
        return removed

    def revoke(self, user_id: str, refresh_token: str) -> bool:
        return self.store.remove_refresh_token(str(user_id), refresh_token)

    def active_sessions(self, user_id: str) -> List[dict]:
        return self.store.list_sessions(str(user_id))

    def _issue_pair(self, user_id: str, session_id: str, claims: Optional[Mapping[str, Any]]):
        access_claims = dict(claims or {})
        access_claims.update({"sub": user_id, "sid": session_id})
        access_token = self.engine.issue_access_token(access_claims)
        refresh_token = self.engine.issue_refresh_token({"sub": user_id, "sid": session_id})

        # the store keeps the same expiry the refresh JWT carries
        refresh_exp = self.engine.decode_token(refresh_token).claims["exp"]
        expires_at = _utc_naive(refresh_exp)

        config = self.engine.config
        pair = TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(config.access_ttl.total_seconds()),
            refresh_expires_in=int(config.refresh_ttl.total_seconds()),
            session_id=session_id,
        )
        return pair, expires_at


def _utc_naive(timestamp: int):
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)
