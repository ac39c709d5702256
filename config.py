"""Environment-driven settings for the sync backend."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = (
    "https://Pinkman009.github.io",
    "http://localhost:3000",
    "http://127.0.0.1:5500",
    "http://localhost:8080",
)

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    mongodb_uri: Optional[str] = None
    database_name: str = "trading_app"
    port: int = 3000
    app_env: str = "development"
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"
    mongodb_timeout_ms: int = 5000
    mongodb_use_transactions: bool = False


def load_settings() -> Settings:
    """Read settings from the process environment (and a .env file, if any)."""
    load_dotenv()

    origins = os.getenv("CORS_ORIGINS")
    if origins:
        cors_origins = tuple(o.strip() for o in origins.split(",") if o.strip())
    else:
        cors_origins = DEFAULT_CORS_ORIGINS

    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI") or None,
        database_name=os.getenv("DATABASE_NAME", "trading_app"),
        port=int(os.getenv("PORT", "3000")),
        app_env=os.getenv("APP_ENV", "development"),
        cors_origins=cors_origins,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        mongodb_timeout_ms=int(os.getenv("MONGODB_TIMEOUT_MS", "5000")),
        mongodb_use_transactions=os.getenv("MONGODB_USE_TRANSACTIONS", "false").lower() in _TRUE,
    )


def validate_settings(settings: Settings) -> None:
    """Validate settings. Raises ValueError with all issues found."""
    errors: list[str] = []

    if not settings.mongodb_uri:
        errors.append("MONGODB_URI is not defined in environment variables")
    elif not settings.mongodb_uri.startswith(("mongodb://", "mongodb+srv://")):
        errors.append("MONGODB_URI must start with mongodb:// or mongodb+srv://")
    if not settings.database_name:
        errors.append("DATABASE_NAME must not be empty")
    if not (0 < settings.port < 65536):
        errors.append(f"PORT must be in (0, 65536), got {settings.port}")
    if settings.mongodb_timeout_ms <= 0:
        errors.append(f"MONGODB_TIMEOUT_MS must be > 0, got {settings.mongodb_timeout_ms}")

    if errors:
        raise ValueError("Invalid configuration:\n  " + "\n  ".join(errors))


_CREDENTIALS = re.compile(r"^(mongodb(?:\+srv)?://)[^:@/]+:[^@/]+@")


def mask_uri(uri: str) -> str:
    """Hide the user and password part of a connection string for logging."""
    return _CREDENTIALS.sub(r"\1username:****@", uri)
