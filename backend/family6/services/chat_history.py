"""Chat history storage, conversation grouping and per-user statistics."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from family6.core.auth import generate_token
from family6.core.clock import as_utc, isoformat
from family6.services.auth import ActionError, AuthService
from family6.store.records import RecordStore

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("human", "ai")
TITLE_LENGTH = 50
PREVIEW_LENGTH = 100
DEFAULT_TITLE = "Nueva conversacion"
ACTIVITY_DAYS = 7
RECENT_SESSIONS = 5


def message_id(now) -> str:
    """Composite id: epoch millis + random suffix. Collisions are unlikely, not impossible."""
    return f"{int(now.timestamp() * 1000)}_{generate_token(9)}"


def _message_out(row: dict) -> dict:
    return {
        "id": row["id"],
        "type": row["message_type"],
        "content": row["content"],
        "createdAt": isoformat(row["created_at"]),
    }


def group_conversations(rows: list[dict]) -> list[dict]:
    """Group rows by session_id (first-seen order), then sort newest first by first message."""
    groups: dict[str, list[dict]] = {}
    for row in rows:
        groups.setdefault(row["session_id"], []).append(row)

    conversations = []
    for session_id, msgs in groups.items():
        first_human = next((m for m in msgs if m["message_type"] == "human"), None)
        text = first_human["content"] if first_human else ""
        conversations.append({
            "sessionId": session_id,
            "title": text[:TITLE_LENGTH] if text else DEFAULT_TITLE,
            "preview": text[:PREVIEW_LENGTH],
            "messageCount": len(msgs),
            "messages": [_message_out(m) for m in msgs],
            "createdAt": isoformat(msgs[0]["created_at"]),
            "updatedAt": isoformat(msgs[-1]["created_at"]),
            "_sort": as_utc(msgs[0]["created_at"]),
        })

    conversations.sort(key=lambda c: c["_sort"], reverse=True)
    for c in conversations:
        del c["_sort"]
    return conversations


class ChatHistoryService:
    def __init__(self, store: RecordStore, auth: AuthService):
        self.store = store
        self.auth = auth

    @property
    def clock(self):
        return self.auth.clock

    def save_message(
        self,
        session_token: Optional[str],
        session_id: Optional[str],
        message_type: Optional[str],
        content: Optional[str],
    ) -> dict:
        session = self.auth.require_session(session_token)
        if not session_id or content is None or content == "":
            raise ActionError("Session id and content are required")
        if message_type not in MESSAGE_TYPES:
            raise ActionError("Message type must be 'human' or 'ai'")

        now = self.clock()
        row = self.store.append("chat_history", {
            "id": message_id(now),
            "session_id": session_id,
            "user_email": session.user_email,
            "message_type": message_type,
            "content": content,
            "created_at": now,
        })
        logger.debug("Saved %s message %s in %s", message_type, row["id"], session_id)
        return {"success": True, "id": row["id"]}

    def get_history(self, session_token: Optional[str]) -> dict:
        session = self.auth.require_session(session_token)
        rows = self.store.filter_by("chat_history", "user_email", session.user_email)
        conversations = group_conversations(rows)
        return {"conversations": conversations, "total": len(conversations)}

    def get_stats(self, session_token: Optional[str]) -> dict:
        session = self.auth.require_session(session_token)
        rows = self.store.filter_by("chat_history", "user_email", session.user_email)

        human = sum(1 for r in rows if r["message_type"] == "human")
        ai = sum(1 for r in rows if r["message_type"] == "ai")

        # trailing window of calendar days (UTC), oldest first
        today = self.clock().date()
        days = [today - timedelta(days=offset) for offset in range(ACTIVITY_DAYS - 1, -1, -1)]
        counts = {day: 0 for day in days}
        for r in rows:
            day = as_utc(r["created_at"]).date()
            if day in counts:
                counts[day] += 1
        peak = max(counts.values())
        daily = [
            {
                "date": day.isoformat(),
                "label": day.strftime("%a"),
                "count": counts[day],
                "percentage": round(counts[day] / peak * 100) if peak else 0,
            }
            for day in days
        ]

        # per-session counts and last-seen time
        per_session: dict[str, dict] = {}
        for r in rows:
            entry = per_session.setdefault(r["session_id"], {"count": 0, "last": None})
            entry["count"] += 1
            created = as_utc(r["created_at"])
            if entry["last"] is None or created >= entry["last"]:
                entry["last"] = created
        recent = sorted(per_session.items(), key=lambda kv: kv[1]["last"], reverse=True)[:RECENT_SESSIONS]

        timestamps = [as_utc(r["created_at"]) for r in rows]
        return {
            "totalSessions": len(per_session),
            "totalMessages": len(rows),
            "humanMessages": human,
            "aiMessages": ai,
            "dailyActivity": daily,
            "recentSessions": [
                {"sessionId": sid, "messageCount": e["count"], "lastMessageAt": isoformat(e["last"])}
                for sid, e in recent
            ],
            "firstMessageAt": isoformat(min(timestamps)) if timestamps else None,
            "lastMessageAt": isoformat(max(timestamps)) if timestamps else None,
        }
