"""Wall-clock helpers.

Every expiry check goes through a ``Clock`` (a zero-argument callable that
returns an aware UTC datetime) so tests can freeze and advance time.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime read back from the DB (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class FrozenClock:
    """Manually driven clock for tests and scripted runs."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = as_utc(start) if start else utcnow()

    def __call__(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = as_utc(value)

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def get_clock() -> Clock:
    """FastAPI dependency; overridden in tests with a FrozenClock."""
    return utcnow
