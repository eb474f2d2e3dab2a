"""Session tokens: create on login, validate with lazy expiry, delete on logout.

A session is ACTIVE while created_at <= now < expires_at. Once now reaches
expires_at it is EXPIRED, which is only noticed on the next ``validate``;
that call removes the row (DELETED) and reports it as invalid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from family6.core.auth import generate_token
from family6.core.clock import Clock, as_utc, utcnow
from family6.core.config import settings
from family6.services.events import (
    AuthEvents, auth_events, SIGNED_IN, SIGNED_OUT, SESSION_EXPIRED,
)
from family6.store.records import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    user_email: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, row: dict) -> "Session":
        return cls(
            token=row["token"],
            user_email=row["user_email"],
            created_at=as_utc(row["created_at"]),
            expires_at=as_utc(row["expires_at"]),
        )


@dataclass(frozen=True)
class Invalid:
    reason: str  # "no session" or "expired"

    def __bool__(self) -> bool:
        return False


class SessionManager:
    def __init__(
        self,
        store: RecordStore,
        clock: Clock = utcnow,
        events: Optional[AuthEvents] = None,
        duration: Optional[timedelta] = None,
    ):
        self.store = store
        self.clock = clock
        self.events = events if events is not None else auth_events
        self.duration = duration or timedelta(days=settings.SESSION_DURATION_DAYS)

    def create(self, email: str) -> Session:
        now = self.clock()
        row = self.store.append("sessions", {
            "token": generate_token(),
            "user_email": email,
            "created_at": now,
            "expires_at": now + self.duration,
        })
        session = Session.from_row(row)
        logger.info("Session created for %s (expires %s)", email, session.expires_at.isoformat())
        self.events.publish(SIGNED_IN, session)
        return session

    def validate(self, token: Optional[str]) -> Union[Session, Invalid]:
        row = self.store.find("sessions", token) if token else None
        if row is None:
            return Invalid("no session")

        session = Session.from_row(row)
        if self.clock() >= session.expires_at:
            self.store.delete_row("sessions", token)
            logger.info("Expired session removed for %s", session.user_email)
            self.events.publish(SESSION_EXPIRED, session)
            return Invalid("expired")
        return session

    def delete(self, token: Optional[str]) -> None:
        if not token:
            return
        row = self.store.find("sessions", token)
        if row is None:
            return
        self.store.delete_row("sessions", token)
        self.events.publish(SIGNED_OUT, Session.from_row(row))
