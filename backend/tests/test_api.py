import json

import httpx
import pytest

from family6.api.deps import get_webhook_http
from main import app


def act(client, action: str, **data) -> dict:
    response = client.post("/api/actions", json={"action": action, **data})
    assert response.status_code == 200
    return response.json()


def confirm_token(store, email: str) -> str:
    return store.find("users", email)["verify_token"]


@pytest.fixture()
def session_token(client, store) -> str:
    act(client, "signup", email="a@x.com", password="pw123456", username="ann")
    client.get(
        "/api/actions",
        params={"action": "confirmEmail", "token": confirm_token(store, "a@x.com")},
        follow_redirects=False,
    )
    return act(client, "login", email="a@x.com", password="pw123456")["token"]


def test_health(client) -> None:
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_signup_login_flow(client, store) -> None:
    signup = act(client, "signup", email="a@x.com", password="pw123456", username="ann")
    assert signup["success"] is True
    assert signup["user"]["verified"] is False

    assert act(client, "login", email="a@x.com", password="pw123456") == {"error": "Email not confirmed"}

    token = confirm_token(store, "a@x.com")
    response = client.get(
        "/api/actions", params={"action": "confirmEmail", "token": token}, follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"].endswith("/confirm.html?success=true")

    replay = client.get(
        "/api/actions", params={"action": "confirmEmail", "token": token}, follow_redirects=False,
    )
    assert replay.headers["location"].endswith("?error=already_verified")

    login = act(client, "login", email="a@x.com", password="pw123456")
    assert login["token"]
    assert login["user"]["email"] == "a@x.com"
    assert act(client, "login", email="a@x.com", password="wrong") == {"error": "Invalid login credentials"}


def test_confirm_with_unknown_token_redirects_with_error(client) -> None:
    response = client.get(
        "/api/actions", params={"action": "confirmEmail", "token": "nope"}, follow_redirects=False,
    )
    assert response.headers["location"].endswith("?error=invalid_token")


def test_session_actions(client, session_token) -> None:
    assert act(client, "validateSession", token=session_token)["valid"] is True
    assert act(client, "getUser", token=session_token)["user"]["username"] == "ann"

    updated = act(client, "updateProfile", token=session_token, username="annie")
    assert updated["user"]["username"] == "annie"

    assert act(client, "updatePassword", token=session_token, newPassword="short") == {
        "error": "Password must be at least 8 characters",
    }
    assert act(client, "updatePassword", token=session_token, newPassword="changed123")["success"] is True

    assert act(client, "logout", token=session_token) == {"success": True}
    assert act(client, "validateSession", token=session_token) == {"error": "Invalid or expired session"}


def test_expired_session_is_rejected(client, session_token, clock) -> None:
    clock.advance(days=7, seconds=1)
    assert act(client, "getUser", token=session_token) == {"error": "Invalid or expired session"}


def test_reset_flow(client, session_token, store) -> None:
    assert act(client, "requestReset", email="ghost@x.com") == act(client, "requestReset", email="a@x.com")
    reset_token = store.find("users", "a@x.com")["reset_token"]

    assert act(client, "resetPassword", token=reset_token, newPassword="brandnew1")["success"] is True
    assert act(client, "login", email="a@x.com", password="brandnew1")["token"]
    assert "error" in act(client, "login", email="a@x.com", password="pw123456")


def test_chat_history_actions(client, session_token) -> None:
    saved = act(client, "saveChatMessage", token=session_token, sessionId="1_s", messageType="human", content="hola")
    assert saved["success"] is True
    act(client, "saveChatMessage", token=session_token, sessionId="1_s", messageType="ai", content="hey")

    history = act(client, "getChatHistory", token=session_token)
    assert history["total"] == 1
    assert history["conversations"][0]["messageCount"] == 2

    stats = act(client, "getChatStats", token=session_token)
    assert stats["humanMessages"] == 1
    assert stats["aiMessages"] == 1


def test_text_plain_body_is_accepted(client) -> None:
    response = client.post(
        "/api/actions",
        content=json.dumps({"action": "requestReset", "email": "x@x.com"}),
        headers={"Content-Type": "text/plain"},
    )
    assert response.json()["success"] is True


def test_bad_requests(client) -> None:
    assert act(client, "dropTables") == {"error": "Unknown action: dropTables"}
    assert client.post("/api/actions", content="{not json").json() == {"error": "Invalid request body"}
    assert client.post("/api/actions", json=["signup"]).json() == {"error": "Invalid request body"}
    assert act(client, "login", email=["a"], password="x") == {"error": "Invalid request body"}
    assert client.get("/api/actions", params={"action": "login"}).json() == {"error": "Unknown action: login"}


def test_chat_send_relays_and_stores(client, session_token, monkeypatch) -> None:
    from family6.core.config import settings
    monkeypatch.setattr(settings, "CHAT_WEBHOOK_URL", "https://hooks.example.com/chat")

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, text=json.dumps({"type": "item", "content": f"echo: {body['chatInput']}"}))

    app.dependency_overrides[get_webhook_http] = lambda: httpx.Client(transport=httpx.MockTransport(handler))

    reply = client.post("/api/chat/send", json={"message": "hi", "token": session_token}).json()
    assert reply["reply"] == "echo: hi"
    user_id = act(client, "getUser", token=session_token)["user"]["id"]
    assert reply["sessionId"].startswith(f"{user_id}_")

    convo = act(client, "getChatHistory", token=session_token)["conversations"][0]
    assert convo["sessionId"] == reply["sessionId"]
    assert [m["type"] for m in convo["messages"]] == ["human", "ai"]

    anonymous = client.post("/api/chat/send", json={"message": "hi"}).json()
    assert anonymous["sessionId"].startswith("anonymous_")
    assert client.post("/api/chat/send", json={"message": "hi", "token": "bad"}).json() == {
        "error": "Invalid or expired session",
    }


def test_actions_run_outside_the_event_loop(client, monkeypatch) -> None:
    import asyncio

    from family6.api import actions
    from family6.schemas.actions import TokenRequest

    seen = {}

    def handler(services, payload):
        try:
            asyncio.get_running_loop()
            seen["on_loop"] = True
        except RuntimeError:
            seen["on_loop"] = False
        return {"ok": True}

    monkeypatch.setitem(actions.HANDLERS, "getUser", (TokenRequest, handler))

    assert act(client, "getUser", token="t") == {"ok": True}
    assert seen == {"on_loop": False}
