"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from leasequeue.constants import BackendKind, DEFAULT_VISIBILITY_TIMEOUT_SECONDS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend selection
    backend: BackendKind = BackendKind.DATABASE

    # Database (required when backend is "database")
    database_url: str | None = None
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_echo: bool = False

    # Queue defaults
    default_visibility_timeout: int = Field(
        default=DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
        gt=0,
    )

    # Observability
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "leasequeue"
    otel_instrument_sqlalchemy: bool = False
    metrics_enabled: bool = True
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
