"""
FloraBatch Configuration
Pydantic Settings for all configurable options.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Remote Vision Service ---
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
    )
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout_seconds: float = 120.0  # Vision calls are slow; no retry

    # --- Previews ---
    preview_max_size: int = 256  # Thumbnail edge in pixels

    # --- Export ---
    export_dir: Path = Field(default_factory=Path.cwd)

    # --- UI ---
    ui_port: int = 8501

    # --- Logging ---
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
