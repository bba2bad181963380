"""
RefreshToken model: one row per live refresh token of a user.
A refresh token is only honoured while its row exists, so deleting the row
is how rotation consumes a token and how logout revokes it.
Fields:
- token_hash (unique) - SHA-256 of the raw token; the raw token is never stored
- user_id (String(36)) - FK to users.id
- session_id - stays the same across rotations of one login
- expires_at - naive UTC, mirrors the JWT exp claim
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(36), nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} session={self.session_id}>"


Index("ix_refresh_tokens_user_session", RefreshToken.user_id, RefreshToken.session_id)
