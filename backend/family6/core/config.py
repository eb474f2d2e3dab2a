from typing import Optional

from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Family6 SaaS"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database: overridden by DATABASE_URL env var in production
    DATABASE_URL: str = f"sqlite:///{Path(__file__).resolve().parent.parent.parent / 'data' / 'family6.db'}"

    # Public URLs used in email links and confirmation redirects
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000/api/actions"
    CONFIRM_PATH: str = "/confirm.html"
    RESET_PASSWORD_PATH: str = "/reset-password.html"

    # Auth
    SESSION_DURATION_DAYS: int = 7
    RESET_TOKEN_HOURS: int = 24
    MIN_PASSWORD_LENGTH: int = 8
    TOKEN_LENGTH: int = 32
    # Off by default: tokens come from the non-cryptographic `random` module
    SECURE_TOKENS: bool = False

    # Chat webhook (n8n); timeout None = wait indefinitely
    CHAT_WEBHOOK_URL: str = ""
    CHAT_WEBHOOK_TIMEOUT: Optional[float] = None

    # SMTP (verification + reset emails)
    SMTP_SERVER: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""

    class Config:
        env_file = ".env"


settings = Settings()
