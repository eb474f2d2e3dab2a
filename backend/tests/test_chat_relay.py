import json

import httpx
import pytest

from family6.core.storage import MemoryStorage
from family6.services.chat_relay import (
    BUSY, CHAT_SESSION_KEY, ChatRelay, RelayError, extract_reply, parse_stream,
)

WEBHOOK = "https://hooks.example.com/chat"


def ndjson(*items) -> str:
    return "\n".join(json.dumps(i) if not isinstance(i, str) else i for i in items)


def webhook(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


# ─── stream parsing ───

def test_parse_stream_accumulates_items_in_order() -> None:
    body = ndjson(
        {"type": "begin"},
        {"type": "item", "content": "Hola"},
        "not json at all",
        {"type": "item", "content": ", que tal?"},
        {"type": "end"},
    )
    assert parse_stream(body) == {"output": "Hola, que tal?"}


def test_parse_stream_error_line_aborts() -> None:
    body = ndjson({"type": "item", "content": "partial"}, {"type": "error", "content": "model down"})
    with pytest.raises(RelayError, match="model down"):
        parse_stream(body)


def test_parse_stream_single_json_payload() -> None:
    assert parse_stream('{"output": "plain reply"}') == {"output": "plain reply"}
    assert parse_stream('[{"output": "listed"}]') == [{"output": "listed"}]


def test_parse_stream_raw_text_fallback() -> None:
    assert parse_stream("just some text") == {"output": "just some text"}


def test_parse_stream_multiline_without_items_returns_text() -> None:
    body = ndjson({"type": "begin"}, {"type": "end"})
    assert parse_stream(body) == {"output": body}


@pytest.mark.parametrize("data,expected", [
    ("text", "text"),
    ({"output": "o"}, "o"),
    ({"response": "r"}, "r"),
    ({"message": "m"}, "m"),
    ({"text": "t"}, "t"),
    ([{"response": "first"}], "first"),
    ([{"other": 1}], '{"other": 1}'),
    ({"other": 1}, '{"other": 1}'),
])
def test_extract_reply(data, expected) -> None:
    assert extract_reply(data) == expected


# ─── session ids ───

def test_session_id_is_prefixed_and_persisted() -> None:
    storage = MemoryStorage()
    relay = ChatRelay(WEBHOOK, storage=storage, user={"id": "7", "email": "a@x.com"})
    sid = relay.get_session_id()
    assert sid.startswith("7_")
    assert storage.get(CHAT_SESSION_KEY) == sid
    # a new relay over the same storage reuses it
    assert ChatRelay(WEBHOOK, storage=storage, user={"id": "7"}).get_session_id() == sid


def test_session_id_regenerated_for_other_user() -> None:
    storage = MemoryStorage()
    storage.set(CHAT_SESSION_KEY, "7_old")
    relay = ChatRelay(WEBHOOK, storage=storage, user={"id": "8"})
    assert relay.get_session_id().startswith("8_")

    relay.set_user({"id": "9"})
    assert relay.get_session_id().startswith("9_")


def test_anonymous_session_and_reset() -> None:
    relay = ChatRelay(WEBHOOK)
    sid = relay.get_session_id()
    assert sid.startswith("anonymous_")
    assert relay.reset_session() != sid


# ─── sending ───

def test_send_message_posts_payload_and_parses_stream(clock) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text=ndjson({"type": "item", "content": "Hi "}, {"type": "item", "content": "Ann"}))

    relay = ChatRelay(WEBHOOK, user={"id": "7", "email": "a@x.com"}, http=webhook(handler), clock=clock)
    result = relay.send_message("  hello  ")

    assert result.ok
    assert result.data == {"output": "Hi Ann"}
    body = seen["body"]
    assert body["action"] == "sendMessage"
    assert body["chatInput"] == "hello"
    assert body["sessionId"] == relay.get_session_id()
    assert body["metadata"] == {"userId": "7", "userEmail": "a@x.com", "timestamp": "2026-03-02T12:00:00Z"}


def test_send_message_rejects_blank_input() -> None:
    calls = []
    relay = ChatRelay(WEBHOOK, http=webhook(lambda r: calls.append(r) or httpx.Response(200)))
    assert relay.send_message("   ").error == "Message cannot be empty"
    assert calls == []


def test_send_message_reports_http_error() -> None:
    relay = ChatRelay(WEBHOOK, http=webhook(lambda r: httpx.Response(502)))
    assert relay.send_message("hi").error == "HTTP error! status: 502"


def test_send_message_reports_stream_error() -> None:
    relay = ChatRelay(WEBHOOK, http=webhook(lambda r: httpx.Response(200, text=ndjson({"type": "error", "content": "nope"}))))
    assert relay.send_message("hi").error == "nope"


def test_send_message_while_busy_is_noop() -> None:
    calls = []
    relay = ChatRelay(WEBHOOK, http=webhook(lambda r: calls.append(r) or httpx.Response(200, text="ok")))
    relay._lock.acquire()
    try:
        assert relay.busy
        assert relay.send_message("hi").error == BUSY
    finally:
        relay._lock.release()
    assert calls == []
    assert relay.send_message("hi").data == {"output": "ok"}


def test_successful_exchange_is_recorded() -> None:
    recorded = []
    relay = ChatRelay(
        WEBHOOK,
        http=webhook(lambda r: httpx.Response(200, text='{"response": "pong"}')),
        recorder=lambda sid, kind, content: recorded.append((sid, kind, content)),
    )
    relay.send_message("ping")
    sid = relay.get_session_id()
    assert recorded == [(sid, "human", "ping"), (sid, "ai", "pong")]


def test_failed_exchange_is_not_recorded() -> None:
    recorded = []
    relay = ChatRelay(
        WEBHOOK,
        http=webhook(lambda r: httpx.Response(500)),
        recorder=lambda *args: recorded.append(args),
    )
    relay.send_message("ping")
    assert recorded == []


def test_missing_webhook_url(monkeypatch) -> None:
    from family6.core.config import settings
    monkeypatch.setattr(settings, "CHAT_WEBHOOK_URL", "")
    assert ChatRelay().send_message("hi").error == "Chat webhook URL is not configured"


def test_each_side_of_exchange_is_recorded_independently(caplog) -> None:
    recorded = []

    def recorder(sid, kind, content):
        if kind == "human":
            raise RuntimeError("sheet locked")
        recorded.append((kind, content))

    relay = ChatRelay(
        WEBHOOK,
        http=webhook(lambda r: httpx.Response(200, text='{"response": "pong"}')),
        recorder=recorder,
    )
    result = relay.send_message("ping")

    assert result.data == {"response": "pong"}
    assert recorded == [("ai", "pong")]
    assert "Could not store human message" in caplog.text


def test_default_storage_is_server_side() -> None:
    assert type(ChatRelay(WEBHOOK).storage) is MemoryStorage
    assert MemoryStorage.__module__ == "family6.core.storage"
