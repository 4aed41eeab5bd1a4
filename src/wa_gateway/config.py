"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    bridge_url: str = "http://localhost:3001"
    auth_data_path: str = "./data/wwebjs_auth"
    api_keys: str | None = None
    webhook_max_attempts: int = 5
    webhook_retry_base_seconds: float = 1.0
    webhook_timeout_seconds: float = 10.0
    webhook_delimiter: str = "|"
    ffmpeg_path: str = "ffmpeg"
    media_root: str | None = None
    engine_reconnect_base_seconds: float = 1.0
    engine_reconnect_max_seconds: float = 30.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_api_keys(raw: str | None) -> set[str] | None:
    """Parse accepted API keys from env; None disables key checks."""
    if raw is None:
        return None
    keys = {chunk.strip() for chunk in raw.split(",") if chunk.strip()}
    return keys or None
