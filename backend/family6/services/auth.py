"""Account operations behind the action endpoint.

Every public method returns a flat success payload (dict) or raises
``ActionError`` whose message is shown to the user verbatim. Credential
failures are deliberately vague.
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from family6.core.auth import generate_salt, generate_token, hash_password, verify_password
from family6.core.clock import Clock, as_utc, isoformat, utcnow
from family6.core.config import settings
from family6.services import email as email_service
from family6.services.events import USER_UPDATED, PASSWORD_CHANGED, EMAIL_CONFIRMED
from family6.services.sessions import Session, SessionManager
from family6.store.records import RecordStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"
INVALID_SESSION = "Invalid or expired session"
RESET_SENT = "If that email is registered, a reset link has been sent."

# confirmEmail outcomes
CONFIRM_SUCCESS = "success"
CONFIRM_INVALID_TOKEN = "invalid_token"
CONFIRM_ALREADY_VERIFIED = "already_verified"


class ActionError(Exception):
    """A user-facing failure; the API returns it as ``{"error": message}``."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def send_in_background(func: Callable, *args) -> None:
    """Send an email on a daemon thread so the response isn't delayed."""
    def _run():
        try:
            func(*args)
        except Exception as e:
            logger.warning("Email delivery error: %s", e)

    threading.Thread(target=_run, daemon=True).start()


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def user_summary(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "email": row["email"],
        "username": row.get("username") or "",
        "verified": bool(row.get("verified")),
        "createdAt": isoformat(row.get("created_at")),
    }


class AuthService:
    def __init__(
        self,
        store: RecordStore,
        sessions: Optional[SessionManager] = None,
        clock: Clock = utcnow,
        dispatch: Callable = send_in_background,
    ):
        self.store = store
        self.clock = clock
        self.sessions = sessions or SessionManager(store, clock=clock)
        self.dispatch = dispatch

    # ─── session helpers ───

    def require_session(self, token: Optional[str]) -> Session:
        session = self.sessions.validate(token)
        if not session:
            raise ActionError(INVALID_SESSION)
        return session

    def require_user(self, token: Optional[str]) -> tuple[Session, dict]:
        session = self.require_session(token)
        user = self.store.find("users", session.user_email)
        if user is None:
            raise ActionError("User not found")
        return session, user

    def _check_password_length(self, password: str) -> None:
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ActionError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")

    # ─── signup / confirmation ───

    def signup(self, email: Optional[str], password: Optional[str], username: Optional[str] = "") -> dict:
        email = normalize_email(email)
        if not email or not password:
            raise ActionError("Email and password are required")
        if self.store.find("users", email) is not None:
            raise ActionError("Email already registered")

        now = self.clock()
        salt = generate_salt()
        verify_token = generate_token()
        username = (username or "").strip() or email.split("@")[0]
        row = self.store.append("users", {
            "email": email,
            "username": username,
            "password_hash": hash_password(password, salt),
            "salt": salt,
            "created_at": now,
            "updated_at": now,
            "verified": False,
            "verify_token": verify_token,
            "reset_token": "",
            "reset_token_expires": None,
        })

        confirm_link = f"{settings.BACKEND_URL}?action=confirmEmail&token={verify_token}"
        self.dispatch(email_service.send_verification_email, email, username, confirm_link)
        logger.info("New signup: %s", email)

        return {
            "success": True,
            "message": "Account created. Check your email to confirm your address.",
            "user": user_summary(row),
        }

    def confirm_email(self, verify_token: Optional[str]) -> str:
        if not verify_token:
            return CONFIRM_INVALID_TOKEN
        user = self.store.find_by("users", "verify_token", verify_token)
        if user is None:
            if self.store.find_by("users", "consumed_verify_token", verify_token) is not None:
                return CONFIRM_ALREADY_VERIFIED
            return CONFIRM_INVALID_TOKEN
        if user["verified"]:
            return CONFIRM_ALREADY_VERIFIED

        self.store.update_fields("users", user["email"], {
            "verified": True,
            "verify_token": "",
            "consumed_verify_token": verify_token,
            "updated_at": self.clock(),
        })
        logger.info("Email confirmed for %s", user["email"])
        self.sessions.events.publish(EMAIL_CONFIRMED, user["email"])
        return CONFIRM_SUCCESS

    # ─── login / logout ───

    def login(self, email: Optional[str], password: Optional[str]) -> dict:
        email = normalize_email(email)
        if not email or not password:
            raise ActionError("Email and password are required")

        user = self.store.find("users", email)
        if user is None or not verify_password(password, user["salt"], user["password_hash"]):
            raise ActionError(INVALID_CREDENTIALS)
        if not user["verified"]:
            raise ActionError("Email not confirmed")

        session = self.sessions.create(email)
        return {
            "success": True,
            "token": session.token,
            "expiresAt": isoformat(session.expires_at),
            "user": user_summary(user),
        }

    def validate_session(self, token: Optional[str]) -> dict:
        session, user = self.require_user(token)
        return {
            "valid": True,
            "user": user_summary(user),
            "expiresAt": isoformat(session.expires_at),
        }

    def logout(self, token: Optional[str]) -> dict:
        if token:
            self.sessions.delete(token)
        return {"success": True}

    # ─── password reset (no session) ───

    def request_reset(self, email: Optional[str]) -> dict:
        email = normalize_email(email)
        user = self.store.find("users", email) if email else None

        if user is not None:
            reset_token = generate_token()
            now = self.clock()
            self.store.update_fields("users", email, {
                "reset_token": reset_token,
                "reset_token_expires": now + timedelta(hours=settings.RESET_TOKEN_HOURS),
                "updated_at": now,
            })
            reset_link = f"{settings.FRONTEND_URL}{settings.RESET_PASSWORD_PATH}?token={reset_token}"
            self.dispatch(email_service.send_password_reset_email, email, user["username"], reset_link)
            logger.info("Password reset requested for %s", email)

        # same response either way: don't reveal whether the email exists
        return {"success": True, "message": RESET_SENT}

    def reset_password(self, token: Optional[str], new_password: Optional[str]) -> dict:
        if not token or not new_password:
            raise ActionError("Token and new password are required")
        self._check_password_length(new_password)

        user = self.store.find_by("users", "reset_token", token)
        if user is None:
            raise ActionError("Invalid or expired reset token")
        expires = as_utc(user["reset_token_expires"])
        now = self.clock()
        if expires is None or now >= expires:
            raise ActionError("Invalid or expired reset token")

        salt = generate_salt()
        self.store.update_fields("users", user["email"], {
            "password_hash": hash_password(new_password, salt),
            "salt": salt,
            "reset_token": "",
            "reset_token_expires": None,
            "updated_at": now,
        })
        logger.info("Password reset completed for %s", user["email"])
        self.sessions.events.publish(PASSWORD_CHANGED, user["email"])
        return {"success": True, "message": "Password updated successfully."}

    # ─── authenticated account changes ───

    def update_password(self, token: Optional[str], new_password: Optional[str]) -> dict:
        session, user = self.require_user(token)
        self._check_password_length(new_password or "")

        salt = generate_salt()
        self.store.update_fields("users", user["email"], {
            "password_hash": hash_password(new_password, salt),
            "salt": salt,
            "updated_at": self.clock(),
        })
        logger.info("Password changed for %s", user["email"])
        self.sessions.events.publish(PASSWORD_CHANGED, user["email"])
        return {"success": True, "message": "Password updated successfully."}

    def update_profile(self, token: Optional[str], username: Optional[str] = None) -> dict:
        session, user = self.require_user(token)

        values = {"updated_at": self.clock()}
        if username is not None:
            values["username"] = username.strip()
        self.store.update_fields("users", user["email"], values)

        updated = self.store.find("users", user["email"])
        summary = user_summary(updated)
        self.sessions.events.publish(USER_UPDATED, summary)
        return {"success": True, "user": summary}

    def get_user(self, token: Optional[str]) -> dict:
        session, user = self.require_user(token)
        return {"user": user_summary(user)}
