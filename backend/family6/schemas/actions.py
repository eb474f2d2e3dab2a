"""Request bodies for the action endpoint.

Field names follow the wire format (camelCase where the front end uses it).
Everything is optional so that missing input reaches the service layer and
gets its user-facing error message there.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ActionRequest(BaseModel):
    action: str = ""

    class Config:
        populate_by_name = True
        extra = "ignore"


# ─── Auth ───

class SignupRequest(ActionRequest):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = ""


class LoginRequest(ActionRequest):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenRequest(ActionRequest):
    """validateSession, logout, getUser, getChatHistory, getChatStats."""
    token: Optional[str] = None


class ResetRequest(ActionRequest):
    email: Optional[str] = None


class NewPasswordRequest(ActionRequest):
    """resetPassword (token = reset token) and updatePassword (token = session token)."""
    token: Optional[str] = None
    new_password: Optional[str] = Field(None, alias="newPassword")


class ProfileUpdateRequest(ActionRequest):
    token: Optional[str] = None
    username: Optional[str] = None


# ─── Chat history ───

class SaveChatMessageRequest(ActionRequest):
    token: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    message_type: Optional[str] = Field(None, alias="messageType")
    content: Optional[str] = None
