"""Pydantic schemas for the server-side chat relay."""

from typing import Any, Optional
from pydantic import BaseModel, Field


class ChatSendRequest(BaseModel):
    message: str = ""
    session_id: Optional[str] = Field(None, alias="sessionId")  # None = start new conversation
    token: Optional[str] = None  # session token; when valid the exchange is stored

    class Config:
        populate_by_name = True


class ChatSendResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    reply: str
    data: Any = None

    class Config:
        populate_by_name = True
