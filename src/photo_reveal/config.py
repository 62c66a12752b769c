"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    max_participants: int = 50
    session_expiry_seconds: int = 24 * 60 * 60
    session_code_length: int = 6
    cleanup_interval_seconds: int = 60 * 60
    broadcast_timeout_seconds: float = 5.0
    cors_origins: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_cors_origins(raw: str | None) -> list[str]:
    """Parse allowed CORS origins from env."""
    if raw is None:
        return ["*"]
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return ["*"]
    origins = [chunk.strip().rstrip("/") for chunk in cleaned.split(",")]
    return [origin for origin in origins if origin] or ["*"]
