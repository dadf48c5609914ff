"""Application configuration using Pydantic Settings."""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Registry settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Promotion policy
    min_usage: int = Field(default=3, ge=1)
    success_threshold: float = Field(default=0.70, ge=0.0, le=1.0)

    # Manifest storage (directory wins over database when both are set)
    manifests_dir: Optional[str] = None
    database_url: Optional[str] = None

    # Tool execution
    tool_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    tool_execution_limit_per_hour: Optional[int] = Field(default=None, ge=1)
    tool_execution_reset_hours: float = Field(default=1.0, gt=0)
    max_tools_per_agent: int = Field(default=50, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
