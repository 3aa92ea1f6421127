"""Application configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are loaded in this priority order (highest to lowest):
    1. Environment variables
    2. .env file (for local development)
    3. Default values

    For local development, copy .env.example to .env and fill in your values.
    For production, set environment variables directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    app_name: str = "GenAI Reproducibility Tracker"
    debug: bool = False

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = ["http://localhost:3000"]

    # =========================================================================
    # API Settings
    # =========================================================================
    api_v1_prefix: str = "/api/v1"

    # =========================================================================
    # OpenRouter (remote model)
    # =========================================================================
    # API key from https://openrouter.ai/keys
    # Required for: checklist generation
    openrouter_api_key: str | None = Field(
        default=None,
        description="OpenRouter API key",
    )
    openrouter_model: str = Field(
        default="x-ai/grok-4.1-fast:free",
        description="Model identifier sent with every completion request",
    )
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_timeout: float = 60.0

    # =========================================================================
    # Storage
    # =========================================================================
    # "file" keeps one file per storage key under storage_dir.
    # "database" keeps keys in the storage_entry table at database_url.
    storage_backend: Literal["file", "database"] = "file"
    storage_dir: str = Field(
        default="data/storage",
        description="Directory for the file storage backend",
    )
    database_url: str = Field(
        default="sqlite:///data/tracker.db",
        description="SQLAlchemy URL for the database storage backend",
    )


settings = Settings()
