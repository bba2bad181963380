from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, JSON, Boolean, DateTime
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=True, default=lambda: ["user"])
    email_verified = Column(Boolean, nullable=False, default=False)

    verification_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime, nullable=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
