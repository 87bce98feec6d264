"""
Application Settings

Environment-driven configuration for the Archivision render API.
Values are read from environment variables (or a local .env file).
"""

import functools
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_name: str = "Archivision Render API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    debug: bool = False
    log_level: str = "INFO"

    # Gemini
    google_api_key: str = ""
    image_model_name: str = "gemini-2.5-flash-image"
    upscale_model_name: str = "gemini-3-pro-image-preview"
    upscale_image_size: str = "4K"
    temperature: float = 0.4

    # Pipeline
    max_retry_attempts: int = 3
    batch_cooldown_seconds: float = 2.0
    fetch_timeout_seconds: float = 30.0


@functools.lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
