"""Chat relay route: forwards a message to the webhook on the caller's behalf."""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends

from family6.api.deps import Services, get_services, get_webhook_http
from family6.core.storage import MemoryStorage
from family6.schemas.chat import ChatSendRequest, ChatSendResponse
from family6.services.auth import ActionError, user_summary
from family6.services.chat_relay import CHAT_SESSION_KEY, ChatRelay, extract_reply

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/send")
def send_message(
    payload: ChatSendRequest,
    services: Services = Depends(get_services),
    http: Optional[httpx.Client] = Depends(get_webhook_http),
):
    """Relay one message; with a valid session token both sides are stored in chat history."""
    user = None
    recorder = None
    if payload.token:
        try:
            _, row = services.auth.require_user(payload.token)
        except ActionError as e:
            return {"error": e.message}
        user = user_summary(row)

        def recorder(session_id: str, message_type: str, content: str):
            services.history.save_message(payload.token, session_id, message_type, content)

    storage = MemoryStorage()
    if payload.session_id:
        storage.set(CHAT_SESSION_KEY, payload.session_id)

    relay = ChatRelay(storage=storage, user=user, http=http, recorder=recorder, clock=services.auth.clock)
    result = relay.send_message(payload.message)
    if not result.ok:
        return {"error": result.error}

    return ChatSendResponse(
        session_id=relay.get_session_id(),
        reply=extract_reply(result.data),
        data=result.data,
    ).model_dump(by_alias=True)
