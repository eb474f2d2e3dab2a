from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from family6.core.clock import Clock, get_clock
from family6.core.database import get_db
from family6.services.auth import AuthService
from family6.services.chat_history import ChatHistoryService
from family6.services.sessions import SessionManager
from family6.store.records import RecordStore


@dataclass
class Services:
    store: RecordStore
    auth: AuthService
    history: ChatHistoryService


def get_services(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Services:
    store = RecordStore(db)
    auth = AuthService(store, SessionManager(store, clock=clock), clock=clock)
    return Services(store=store, auth=auth, history=ChatHistoryService(store, auth))


def get_webhook_http() -> Optional[httpx.Client]:
    """HTTP client for the chat webhook; None lets the relay open its own."""
    return None
