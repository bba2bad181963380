"""
Credential store: persistence of users and their refresh-token sets.

Every public method runs in exactly one transaction on the calling thread's
scoped session. SQLAlchemy failures are logged and re-raised as StoreError,
so callers never see driver exceptions.

Refresh, reset and verification tokens are accepted raw and stored only as
SHA-256 digests.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth_core.errors import EmailTaken, StoreError
from models.base_model import utcnow
from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.user import User
from utils.security import hash_token

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower() if isinstance(email, str) else email


class CredentialStore:
    def __init__(self, storage: DBStorage, max_tokens_per_user: Optional[int] = None):
        self._storage = storage
        self.max_tokens_per_user = max_tokens_per_user

    @contextmanager
    def _transaction(self, action: str):
        session = self._storage.get_session()
        with self._storage.transaction_lock:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Credential store failure during %s", action, exc_info=True)
                raise StoreError() from exc
            except Exception:
                session.rollback()
                raise

    @staticmethod
    def _user_query():
        # populate_existing: another request may have changed the row since
        # this thread's session last loaded it
        return select(User).execution_options(populate_existing=True)

    # -- users ------------------------------------------------------------

    def find_by_email(self, email: str) -> Optional[User]:
        with self._transaction("find_by_email") as session:
            stmt = self._user_query().where(User.email == normalize_email(email))
            return session.execute(stmt).scalar_one_or_none()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        with self._transaction("find_by_id") as session:
            stmt = self._user_query().where(User.id == str(user_id))
            return session.execute(stmt).scalar_one_or_none()

    def create(self, email: str, password_hash: str, name: Optional[str] = None,
               roles: Optional[List[str]] = None) -> User:
        """Insert a user. A unique-email violation surfaces as EmailTaken."""
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=name,
            roles=roles or ["user"],
            email_verified=False,
        )
        with self._transaction("create") as session:
            session.add(user)
            try:
                session.flush()
            except IntegrityError as exc:
                raise EmailTaken() from exc
            # load server-side timestamps while the row is at hand
            session.refresh(user)
        return user

    def update_password(self, user_id: str, password_hash: str) -> bool:
        """Replace the password hash and invalidate any pending reset token."""
        with self._transaction("update_password") as session:
            result = session.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, reset_token_hash=None, reset_token_expires_at=None)
            )
            return result.rowcount == 1

    # -- password reset / email verification --------------------------------

    def set_reset_token(self, user_id: str, token: str, expires_at: datetime) -> None:
        with self._transaction("set_reset_token") as session:
            session.execute(
                update(User)
                .where(User.id == user_id)
                .values(reset_token_hash=hash_token(token), reset_token_expires_at=expires_at)
            )

    def find_by_reset_token(self, token: str) -> Optional[User]:
        with self._transaction("find_by_reset_token") as session:
            stmt = self._user_query().where(User.reset_token_hash == hash_token(token))
            return session.execute(stmt).scalar_one_or_none()

    def set_verification_token(self, user_id: str, token: str) -> None:
        with self._transaction("set_verification_token") as session:
            session.execute(
                update(User).where(User.id == user_id).values(verification_token_hash=hash_token(token))
            )

    def mark_email_verified(self, token: str) -> Optional[User]:
        """Consume a verification token. Returns the user, or None if unknown."""
        with self._transaction("mark_email_verified") as session:
            stmt = self._user_query().where(User.verification_token_hash == hash_token(token))
            user = session.execute(stmt).scalar_one_or_none()
            if user is None:
                return None
            user.email_verified = True
            user.verification_token_hash = None
        return user

    # -- refresh-token set --------------------------------------------------

    def add_refresh_token(self, user_id: str, token: str, session_id: str, expires_at: datetime) -> None:
        with self._transaction("add_refresh_token") as session:
            self._insert_token(session, user_id, token, session_id, expires_at)

    def remove_refresh_token(self, user_id: str, token: str) -> bool:
        with self._transaction("remove_refresh_token") as session:
            result = session.execute(
                delete(RefreshToken).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.token_hash == hash_token(token),
                )
            )
            return result.rowcount == 1

    def remove_session(self, user_id: str, session_id: str) -> int:
        with self._transaction("remove_session") as session:
            result = session.execute(
                delete(RefreshToken).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.session_id == session_id,
                )
            )
            return result.rowcount

    def clear_refresh_tokens(self, user_id: str) -> int:
        with self._transaction("clear_refresh_tokens") as session:
            result = session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
            return result.rowcount

    def rotate_refresh_token(self, user_id: str, old_token: str, new_token: str,
                             session_id: str, expires_at: datetime) -> bool:
        """Consume `old_token` and store `new_token` in one transaction.

        The DELETE is the membership check: only the transaction that actually
        removes the row may insert a replacement. Returns False when the old
        token was not in the set (already rotated or revoked).
        """
        with self._transaction("rotate_refresh_token") as session:
            result = session.execute(
                delete(RefreshToken).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.token_hash == hash_token(old_token),
                )
            )
            if result.rowcount != 1:
                return False
            self._insert_token(session, user_id, new_token, session_id, expires_at)
        return True

    def list_sessions(self, user_id: str) -> List[dict]:
        """Live sessions of a user, newest first."""
        with self._transaction("list_sessions") as session:
            rows = session.execute(
                select(RefreshToken.session_id, RefreshToken.created_at, RefreshToken.expires_at)
                .where(RefreshToken.user_id == user_id, RefreshToken.expires_at > utcnow())
                .order_by(RefreshToken.created_at.desc())
            ).all()
        return [
            {"session_id": row.session_id, "created_at": row.created_at, "expires_at": row.expires_at}
            for row in rows
        ]

    def _insert_token(self, session, user_id, token, session_id, expires_at):
        now = utcnow()
        # expired rows are dead weight; drop them whenever the set grows
        session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.expires_at <= now)
        )
        session.add(
            RefreshToken(
                token_hash=hash_token(token),
                user_id=user_id,
                session_id=session_id,
                expires_at=expires_at,
                created_at=now,
            )
        )
        if self.max_tokens_per_user:
            session.flush()
            stale = session.execute(
                select(RefreshToken.id)
                .where(RefreshToken.user_id == user_id)
                .order_by(RefreshToken.created_at.desc())
                .offset(self.max_tokens_per_user)
            ).scalars().all()
            if stale:
                session.execute(delete(RefreshToken).where(RefreshToken.id.in_(stale)))
