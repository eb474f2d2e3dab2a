"""Action endpoint: one URL, action-tagged JSON body, flat JSON replies.

Every reply is HTTP 200 carrying either the action's payload or
``{"error": "..."}``. The email confirmation link is the only GET action and
answers with a redirect to the front end's confirmation page.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from family6.api.deps import Services, get_services
from family6.core.config import settings
from family6.schemas.actions import (
    SignupRequest, LoginRequest, TokenRequest, ResetRequest,
    NewPasswordRequest, ProfileUpdateRequest, SaveChatMessageRequest,
)
from family6.services.auth import ActionError, CONFIRM_SUCCESS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["actions"])


HANDLERS = {
    "signup": (SignupRequest, lambda s, r: s.auth.signup(r.email, r.password, r.username)),
    "login": (LoginRequest, lambda s, r: s.auth.login(r.email, r.password)),
    "validateSession": (TokenRequest, lambda s, r: s.auth.validate_session(r.token)),
    "logout": (TokenRequest, lambda s, r: s.auth.logout(r.token)),
    "requestReset": (ResetRequest, lambda s, r: s.auth.request_reset(r.email)),
    "resetPassword": (NewPasswordRequest, lambda s, r: s.auth.reset_password(r.token, r.new_password)),
    "updatePassword": (NewPasswordRequest, lambda s, r: s.auth.update_password(r.token, r.new_password)),
    "updateProfile": (ProfileUpdateRequest, lambda s, r: s.auth.update_profile(r.token, r.username)),
    "getUser": (TokenRequest, lambda s, r: s.auth.get_user(r.token)),
    "saveChatMessage": (
        SaveChatMessageRequest,
        lambda s, r: s.history.save_message(r.token, r.session_id, r.message_type, r.content),
    ),
    "getChatHistory": (TokenRequest, lambda s, r: s.history.get_history(r.token)),
    "getChatStats": (TokenRequest, lambda s, r: s.history.get_stats(r.token)),
}


def run_action(services: Services, body: dict) -> dict:
    action = body.get("action")
    handler = HANDLERS.get(action)
    if handler is None:
        return {"error": f"Unknown action: {action}"}

    schema, func = handler
    try:
        payload = schema.model_validate(body)
    except ValidationError as e:
        logger.info("Rejected %s body: %s", action, e.errors()[:1])
        return {"error": "Invalid request body"}

    try:
        return func(services, payload)
    except ActionError as e:
        return {"error": e.message}
    except Exception as e:
        logger.exception("Action %s failed", action)
        return {"error": str(e)[:300] or "Internal error"}


# ─── POST: every action except confirmEmail ───
@router.post("/actions")
async def post_action(request: Request, services: Services = Depends(get_services)):
    # Body may arrive as text/plain (CORS-simple requests), so parse it ourselves
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        return {"error": "Invalid request body"}
    if not isinstance(body, dict):
        return {"error": "Invalid request body"}
    # handlers block on SQLAlchemy and hashing
    return await run_in_threadpool(run_action, services, body)


# ─── GET: confirmation link from the signup email ───
@router.get("/actions")
def get_action(action: str = "", token: str = "", services: Services = Depends(get_services)):
    if action != "confirmEmail":
        return JSONResponse({"error": f"Unknown action: {action}"})

    outcome = services.auth.confirm_email(token)
    query = "success=true" if outcome == CONFIRM_SUCCESS else f"error={outcome}"
    return RedirectResponse(f"{settings.FRONTEND_URL}{settings.CONFIRM_PATH}?{query}", status_code=302)
