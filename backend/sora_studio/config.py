from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Sora Studio settings.

    Loaded from environment variables or .env file. Only the API layer and
    ``GenerationOrchestrator.from_settings`` read these; the services take
    plain constructor arguments.
    """

    # --- Application ---
    APP_NAME: str = "Sora Studio"
    DEBUG: bool = False

    # --- Remote video API (OpenAI-compatible /videos) ---
    SORA_API_BASE: str = "https://api.openai.com/v1"
    SORA_API_KEY: str = ""
    SORA_HTTP_TIMEOUT: float = 60.0

    # --- Status polling ---
    SORA_POLL_INTERVAL: float = 3.0
    SORA_POLL_MAX_ATTEMPTS: int = 200  # ~10 minutes at the default interval
    SORA_POLL_TRANSPORT_RETRIES: int = 0

    # --- Reference image conformance ---
    SORA_DEFAULT_SIZE: str = "1280x720"
    CONFORM_JPEG_QUALITY: int = 95

    # --- Media Volume ---
    MEDIA_VOLUME: str = "media_volume"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
