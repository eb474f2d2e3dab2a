from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Boolean

from family6.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), default="")
    # SHA-256 hex digest of password + salt
    password_hash = Column(String(64), nullable=False)
    salt = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Email confirmation
    verified = Column(Boolean, default=False)
    verify_token = Column(String(128), default="", index=True)
    # token consumed by a successful confirmation; replays resolve to "already verified"
    consumed_verify_token = Column(String(128), default="", index=True)

    # Password reset (empty unless a reset is pending)
    reset_token = Column(String(128), default="", index=True)
    reset_token_expires = Column(DateTime, nullable=True, default=None)
