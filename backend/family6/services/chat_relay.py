"""Chat relay to the n8n webhook.

The webhook answers with newline-delimited JSON. Each line is parsed on its
own: ``item`` lines contribute their ``content`` in arrival order, an
``error`` line aborts with its content, and lines that fail to parse are
skipped. When nothing accumulated and the body was a single line, that line
is returned as a plain JSON payload, or as raw text if it isn't JSON.

No retries. The timeout comes from CHAT_WEBHOOK_TIMEOUT (None = unbounded).
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from family6.core.storage import MemoryStorage
from family6.core.clock import Clock, isoformat, utcnow
from family6.core.config import settings

logger = logging.getLogger(__name__)

CHAT_SESSION_KEY = "chat_session_id"
ANONYMOUS = "anonymous"
BUSY = "busy"

# (session_id, message_type, content) -> None
Recorder = Callable[[str, str, str], Any]


class RelayError(Exception):
    """Webhook reported an error or could not be reached."""


@dataclass
class RelayResult:
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def new_session_id(user_id: Optional[str] = None) -> str:
    return f"{user_id or ANONYMOUS}_{uuid.uuid4()}"


def parse_stream(text: str) -> Any:
    lines = text.strip().split("\n")

    parts = []
    for line in lines:
        try:
            item = json.loads(line)
        except ValueError:
            continue
        if not isinstance(item, dict):
            continue
        if item.get("type") == "item" and item.get("content"):
            parts.append(str(item["content"]))
        elif item.get("type") == "error":
            raise RelayError(item.get("content") or "Error from webhook")

    content = "".join(parts)
    if not content and len(lines) == 1:
        try:
            return json.loads(lines[0])
        except ValueError:
            content = text
    return {"output": content or text}


def extract_reply(data: Any) -> str:
    """Pick display text out of whatever shape the webhook returned."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        for key in ("output", "response", "message", "text"):
            if data.get(key):
                return str(data[key])
    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict):
            for key in ("output", "response", "message"):
                if first.get(key):
                    return str(first[key])
        return json.dumps(first)
    return json.dumps(data)


class ChatRelay:
    """
    Forwards user messages to the webhook and keeps the chat session id.

    Args:
        webhook_url: endpoint receiving ``sendMessage`` posts
        storage:     where the chat session id persists between runs
        user:        user summary dict (``id``, ``email``) or None
        http:        httpx.Client to use (tests pass one with a MockTransport)
        recorder:    called with each side of a successful exchange
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        storage=None,
        user: Optional[dict] = None,
        http: Optional[httpx.Client] = None,
        recorder: Optional[Recorder] = None,
        clock: Clock = utcnow,
    ):
        self.webhook_url = webhook_url or settings.CHAT_WEBHOOK_URL
        self.storage = storage if storage is not None else MemoryStorage()
        self.user = user
        self.http = http
        self.recorder = recorder
        self.clock = clock
        self._session_id: Optional[str] = None
        self._lock = threading.Lock()

    # ─── session id ───

    @property
    def user_id(self) -> Optional[str]:
        return (self.user or {}).get("id")

    def set_user(self, user: Optional[dict]) -> None:
        self.user = user
        self._session_id = None  # re-resolved against the new user on next use

    def get_session_id(self) -> str:
        if self._session_id:
            return self._session_id

        session_id = self.storage.get(CHAT_SESSION_KEY)
        if session_id and self.user_id and session_id.split("_")[0] != str(self.user_id):
            session_id = None
        if not session_id:
            session_id = new_session_id(self.user_id)
            self.storage.set(CHAT_SESSION_KEY, session_id)

        self._session_id = session_id
        return session_id

    def reset_session(self) -> str:
        self._session_id = new_session_id(self.user_id)
        self.storage.set(CHAT_SESSION_KEY, self._session_id)
        return self._session_id

    # ─── sending ───

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def build_payload(self, message: str) -> dict:
        user = self.user or {}
        return {
            "action": "sendMessage",
            "sessionId": self.get_session_id(),
            "chatInput": message.strip(),
            "metadata": {
                "userId": user.get("id") or ANONYMOUS,
                "userEmail": user.get("email") or ANONYMOUS,
                "timestamp": isoformat(self.clock()),
            },
        }

    def _post(self, payload: dict) -> str:
        if not self.webhook_url:
            raise RelayError("Chat webhook URL is not configured")
        headers = {"Content-Type": "application/json"}
        try:
            if self.http is not None:
                resp = self.http.post(self.webhook_url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=settings.CHAT_WEBHOOK_TIMEOUT) as client:
                    resp = client.post(self.webhook_url, json=payload, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RelayError(f"HTTP error! status: {e.response.status_code}")
        except httpx.HTTPError as e:
            raise RelayError(f"Webhook unreachable: {e}")
        return resp.text

    def _record(self, session_id: str, message: str, reply: str) -> list[str]:
        """Store both sides independently; returns the message types that failed."""
        failed = []
        for message_type, content in (("human", message), ("ai", reply)):
            try:
                self.recorder(session_id, message_type, content)
            except Exception as e:
                logger.warning("Could not store %s message for %s: %s", message_type, session_id, e)
                failed.append(message_type)
        return failed

    def send_message(self, message: Optional[str]) -> RelayResult:
        if not message or not message.strip():
            return RelayResult(error="Message cannot be empty")

        # one exchange at a time per relay
        if not self._lock.acquire(blocking=False):
            return RelayResult(error=BUSY)
        try:
            payload = self.build_payload(message)
            try:
                data = parse_stream(self._post(payload))
            except RelayError as e:
                logger.error("Chat relay error: %s", e)
                return RelayResult(error=str(e))

            if self.recorder is not None:
                self._record(payload["sessionId"], payload["chatInput"], extract_reply(data))
            return RelayResult(data=data)
        finally:
            self._lock.release()
