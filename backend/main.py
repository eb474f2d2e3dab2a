import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure root logger to show INFO for our application modules
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
# Suppress noisy third-party loggers
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from family6.core.config import settings
from family6.core.database import init_db
from family6.api import actions, health
from family6.api import chat as chat_api
from family6.services.events import auth_events

# Create the data directory and all tables
init_db()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
)

# CORS: production uses FRONTEND_URL env var; dev adds localhost origins
_cors_origins = [settings.FRONTEND_URL]
if settings.DEBUG:
    _cors_origins += ["http://localhost:3000", "http://127.0.0.1:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router)
app.include_router(actions.router)
app.include_router(chat_api.router)


def _log_auth_event(event: str, payload) -> None:
    if isinstance(payload, dict):
        email = payload.get("email", "")
    elif isinstance(payload, str):
        email = payload
    else:
        email = getattr(payload, "user_email", "")
    logging.getLogger("family6.audit").info("%s %s", event, email)


auth_events.subscribe(_log_auth_event)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
