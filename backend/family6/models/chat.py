"""Chat history rows: one per human or AI message, grouped by session_id."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Text

from family6.core.database import Base


class ChatMessage(Base):
    """Immutable once appended."""
    __tablename__ = "chat_history"

    # insertion order; conversations are rebuilt in this order
    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False, index=True)  # <epoch-millis>_<random suffix>
    session_id = Column(String(128), nullable=False, index=True)
    user_email = Column(String(255), nullable=False, index=True)
    message_type = Column(String(10), nullable=False)  # human, ai
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
