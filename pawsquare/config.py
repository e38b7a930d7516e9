"""
Runtime configuration helpers for the PawSquare backend.

Loads DATABASE_URL, backend credentials and AI gateway settings from the
environment, falling back to the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite+pysqlite:///./pawsquare.db", alias="DATABASE_URL")

    app_name: str = Field(default="PawSquare Backend", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")

    # Backend platform (auth + realtime)
    backend_url: str = Field(default="", alias="BACKEND_URL")
    backend_anon_key: str | None = Field(default=None, alias="BACKEND_ANON_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: str | None = Field(default="authenticated", alias="JWT_AUDIENCE")

    # Pet care assistant
    ai_gateway_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1/chat/completions",
        alias="AI_GATEWAY_URL",
    )
    ai_model: str = Field(default="google/gemini-3-flash-preview", alias="AI_MODEL")
    ai_gateway_timeout: float = Field(default=60.0, alias="AI_GATEWAY_TIMEOUT")
    allowed_origin: str | None = Field(default=None, alias="ALLOWED_ORIGIN")
    rate_limit_per_hour: int = Field(default=20, alias="RATE_LIMIT_PER_HOUR")

    # Presence
    typing_reset_seconds: float = Field(default=3.0, alias="TYPING_RESET_SECONDS")

    # Usage log retention
    usage_retention_hours: int = Field(default=24, alias="USAGE_RETENTION_HOURS")
    usage_cleanup_interval_minutes: int = Field(default=60, alias="USAGE_CLEANUP_INTERVAL_MINUTES")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
