# backend/shopdesk/config.py
from __future__ import annotations
import os


class ConfigurationError(RuntimeError):
    """Raised at startup when required environment configuration is missing."""


def _split_csv(value: str | None) -> set[str]:
    if not value:
        return set()
    return {part.strip() for part in value.split(",") if part.strip()}


class Config:
    # Both are required outside of testing; see validate_config()
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API (dev frontends by default)
    CORS_ORIGINS = _split_csv(os.environ.get("SHOPDESK_CORS_ORIGINS")) or {
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    }

    # Spreadsheet uploads are small; reject anything bigger than 5 MB
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024


def validate_config(config) -> None:
    """
    Fail fast when connection settings are missing.

    Raises ConfigurationError naming every missing variable instead of
    letting the first database call fail with an opaque error.
    """
    missing = []
    if not config.get("SQLALCHEMY_DATABASE_URI"):
        missing.append("DATABASE_URL")
    if not config.get("SECRET_KEY"):
        missing.append("SECRET_KEY")
    if missing:
        raise ConfigurationError(
            "Missing required environment variables: "
            + ", ".join(missing)
            + ". Set them before starting ShopDesk."
        )
