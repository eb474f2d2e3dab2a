import os

# keep the app's own engine off the on-disk database while tests import main
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from family6.api.deps import Services, get_services
from family6.core.clock import FrozenClock, get_clock
from family6.core.database import Base, get_db
from family6.services.auth import AuthService
from family6.services.chat_history import ChatHistoryService
from family6.services.events import AuthEvents
from family6.services.sessions import SessionManager
from family6.store.records import RecordStore
from main import app


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def store(db) -> RecordStore:
    return RecordStore(db)


@pytest.fixture()
def events() -> AuthEvents:
    return AuthEvents()


@pytest.fixture()
def sent_emails() -> list:
    """(function name, args) for every email the services tried to send."""
    return []


@pytest.fixture()
def sessions(store, clock, events) -> SessionManager:
    return SessionManager(store, clock=clock, events=events)


@pytest.fixture()
def auth(store, sessions, clock, sent_emails) -> AuthService:
    def capture(func, *args):
        sent_emails.append((func.__name__, args))

    return AuthService(store, sessions, clock=clock, dispatch=capture)


@pytest.fixture()
def history(store, auth) -> ChatHistoryService:
    return ChatHistoryService(store, auth)


def link_token(link: str) -> str:
    return parse_qs(urlparse(link).query)["token"][0]


@pytest.fixture()
def make_user(auth, sent_emails):
    """Sign up and confirm a user, returning a fresh session token."""
    def _make(email: str = "ann@example.com", password: str = "pw123456", username: str = "ann") -> str:
        auth.signup(email, password, username)
        name, args = sent_emails[-1]
        assert name == "send_verification_email"
        assert auth.confirm_email(link_token(args[2])) == "success"
        return auth.login(email, password)["token"]

    return _make


@pytest.fixture()
def client(db, store, auth, history, clock):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_services] = lambda: Services(store=store, auth=auth, history=history)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
