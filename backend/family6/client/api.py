"""Python client for the action endpoint.

Keeps the signed-in session as a plain blob ``{token, user, expiresAt}``
under ``family6_session`` in its storage and notifies auth-state observers
on sign in / sign out. Every call returns an ``ApiResult``; failures never
raise.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qs

import httpx

from family6.core.storage import MemoryStorage
from family6.client.validators import is_valid_email, validate_password
from family6.services.chat_relay import ChatRelay
from family6.services.events import AuthEvents, AuthCallback, Subscription, SIGNED_IN, SIGNED_OUT

logger = logging.getLogger(__name__)

STORAGE_KEY = "family6_session"
RESET_TOKEN_KEY = "reset_token"
NO_SESSION = "No session token"

CONFIRM_ERRORS = {
    "invalid_token": "The confirmation link is invalid or has expired.",
    "already_verified": "This account has already been verified.",
    "expired": "The link has expired. Request a new one.",
}


@dataclass
class ApiResult:
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Family6Client:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        storage=None,
        http: Optional[httpx.Client] = None,
        action_path: str = "/api/actions",
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url, timeout=None)
        self.action_path = action_path
        self.events = AuthEvents()

    def close(self) -> None:
        # a caller-supplied client is left for the caller to close
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "Family6Client":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ─── transport ───

    def api_request(self, action: str, **data) -> ApiResult:
        body = json.dumps({"action": action, **data})
        try:
            # text/plain keeps browser requests CORS-simple; the server parses it as JSON
            resp = self.http.post(self.action_path, content=body, headers={"Content-Type": "text/plain"})
            resp.raise_for_status()
            result = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("API request error: HTTP %s", e.response.status_code)
            return ApiResult(error=f"HTTP error! status: {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("API request error: %s", e)
            return ApiResult(error=str(e))

        if isinstance(result, dict) and result.get("error"):
            return ApiResult(error=result["error"])
        return ApiResult(data=result)

    # ─── stored session ───

    def save_session(self, session: Optional[dict]) -> None:
        if session:
            self.storage.set(STORAGE_KEY, session)

    def get_stored_session(self) -> Optional[dict]:
        stored = self.storage.get(STORAGE_KEY)
        return stored if isinstance(stored, dict) else None

    def clear_session(self) -> None:
        self.storage.remove(STORAGE_KEY)

    def get_session_token(self) -> Optional[str]:
        return (self.get_stored_session() or {}).get("token")

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        return self.events.subscribe(callback)

    # ─── account ───

    def signup(self, email: str, password: str, username: str = "") -> ApiResult:
        if not is_valid_email(email):
            return ApiResult(error="Invalid email address")
        valid, message = validate_password(password)
        if not valid:
            return ApiResult(error=message)
        return self.api_request("signup", email=email, password=password, username=username)

    def login(self, email: str, password: str) -> ApiResult:
        result = self.api_request("login", email=email, password=password)
        if result.ok and result.data.get("token"):
            session = {
                "token": result.data["token"],
                "user": result.data.get("user"),
                "expiresAt": result.data.get("expiresAt"),
            }
            self.save_session(session)
            self.events.publish(SIGNED_IN, session)
        return result

    def validate_session(self) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        result = self.api_request("validateSession", token=token)
        if not result.ok:
            self.clear_session()
        return result

    def get_session(self) -> ApiResult:
        stored = self.get_stored_session()
        if not stored:
            return ApiResult(data={"session": None})
        result = self.validate_session()
        if not result.ok:
            return ApiResult(data={"session": None})
        return ApiResult(data={"session": {
            "token": stored["token"],
            "user": result.data.get("user") or stored.get("user"),
            "expiresAt": stored.get("expiresAt"),
        }})

    def logout(self) -> ApiResult:
        token = self.get_session_token()
        if token:
            self.api_request("logout", token=token)
        self.clear_session()
        self.events.publish(SIGNED_OUT, None)
        return ApiResult(data={"success": True})

    def request_password_reset(self, email: str) -> ApiResult:
        return self.api_request("requestReset", email=email)

    def reset_password_with_token(self, token: str, new_password: str) -> ApiResult:
        return self.api_request("resetPassword", token=token, newPassword=new_password)

    def update_password(self, new_password: str) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        return self.api_request("updatePassword", token=token, newPassword=new_password)

    def change_password(self, new_password: str, reset_token: Optional[str] = None) -> ApiResult:
        """Reset flow when a reset token is known, logged-in change otherwise."""
        if reset_token:
            return self.reset_password_with_token(reset_token, new_password)
        return self.update_password(new_password)

    def update_profile(self, **fields) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        return self.api_request("updateProfile", token=token, **fields)

    def get_user(self) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        result = self.api_request("getUser", token=token)
        if result.ok and result.data.get("user"):
            session = self.get_stored_session()
            if session:
                session["user"] = result.data["user"]
                self.save_session(session)
        return result

    # ─── chat history ───

    def save_chat_message(self, session_id: str, message_type: str, content: str) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        return self.api_request(
            "saveChatMessage", token=token, sessionId=session_id, messageType=message_type, content=content,
        )

    def get_chat_history(self) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        return self.api_request("getChatHistory", token=token)

    def get_chat_stats(self) -> ApiResult:
        token = self.get_session_token()
        if not token:
            return ApiResult(error=NO_SESSION)
        return self.api_request("getChatStats", token=token)

    def chat_relay(self, webhook_url: Optional[str] = None, http: Optional[httpx.Client] = None,
                   store_history: bool = True) -> ChatRelay:
        """Relay bound to the signed-in user; stores exchanges through saveChatMessage."""
        user = (self.get_stored_session() or {}).get("user")

        def recorder(session_id: str, message_type: str, content: str):
            result = self.save_chat_message(session_id, message_type, content)
            if not result.ok:
                raise RuntimeError(result.error)

        return ChatRelay(
            webhook_url=webhook_url,
            storage=self.storage,
            user=user,
            http=http,
            recorder=recorder if (store_history and user) else None,
        )

    # ─── links from emails ───

    def handle_auth_callback(self, query: str) -> tuple[Optional[str], ApiResult]:
        """
        Interpret the query string a confirmation or reset link landed on.

        Returns (type, result) where type is "email_confirm", "password_reset" or None.
        """
        params = {k: v[0] for k, v in parse_qs(query.lstrip("?")).items()}

        if params.get("success") == "true":
            return "email_confirm", ApiResult(data={"confirmed": True})
        if params.get("error"):
            return None, ApiResult(error=CONFIRM_ERRORS.get(params["error"], "Confirmation failed."))
        if params.get("token"):
            self.storage.set(RESET_TOKEN_KEY, params["token"])
            return "password_reset", ApiResult(data={"hasResetToken": True, "token": params["token"]})
        return None, ApiResult()

    def get_reset_token(self) -> Optional[str]:
        return self.storage.get(RESET_TOKEN_KEY)

    def clear_reset_token(self) -> None:
        self.storage.remove(RESET_TOKEN_KEY)
