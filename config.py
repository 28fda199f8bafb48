"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


# ---------------------------------------------------------------------------
# Feature flags: simple dict, no external service
# ---------------------------------------------------------------------------
FEATURE_FLAGS: dict[str, bool] = {
    "presence_tracking": True,
    "study_assistant": True,
    "remote_backend": True,
}


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")

    # Durable storage: in-memory (default) or Redis (set STORAGE_BACKEND=redis)
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "memory")
    STORAGE_PREFIX = os.environ.get("STORAGE_PREFIX", "learninghub_")
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Remote backend. Empty URL means every call is served locally.
    REMOTE_API_URL = os.environ.get("REMOTE_API_URL", "")
    REMOTE_API_TIMEOUT = float(os.environ.get("REMOTE_API_TIMEOUT", "5"))
    # Bearer tokens with this prefix are demo sessions handled locally
    LOCAL_TOKEN_PREFIX = os.environ.get("LOCAL_TOKEN_PREFIX", "local.")

    # Presence heartbeat (seconds)
    PRESENCE_SWEEP_SECONDS = int(os.environ.get("PRESENCE_SWEEP_SECONDS", "30"))
    PRESENCE_AWAY_SECONDS = int(os.environ.get("PRESENCE_AWAY_SECONDS", "120"))
    PRESENCE_REMOVE_SECONDS = int(os.environ.get("PRESENCE_REMOVE_SECONDS", "600"))

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"

    FEATURE_FLAGS = FEATURE_FLAGS


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.STORAGE_BACKEND == "redis" and not cls.REDIS_URL:
            errors.append("STORAGE_BACKEND=redis requires REDIS_URL.")

        if not cls.REMOTE_API_URL:
            warnings.warn("REMOTE_API_URL is not set, all sessions will use local simulation.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    STORAGE_BACKEND = "memory"
    REMOTE_API_URL = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
