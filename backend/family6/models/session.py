from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime

from family6.core.database import Base


class UserSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True, index=True)
    # weak reference to users.email, no FK on purpose: users are looked up by key
    user_email = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime, nullable=False)
