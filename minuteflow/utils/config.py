"""
Configuration management for the MinuteFlow meeting automation core.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SummarizerBackend(str, Enum):
    """Which summarization collaborator to build."""

    LLM = "llm"
    LOCAL = "local"


class WindowSettings(BaseSettings):
    """Transcript windowing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WINDOW_", env_file=".env", extra="ignore"
    )

    seconds: int = Field(
        default=60, ge=1, le=3600, description="Length of one transcript window"
    )


class RetrySettings(BaseSettings):
    """Backoff configuration for calls to external collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_", env_file=".env", extra="ignore"
    )

    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per call")
    base_delay: float = Field(
        default=0.1, ge=0.0, description="Base backoff delay in seconds"
    )
    max_delay: float = Field(
        default=5.0, ge=0.0, description="Upper bound for a single backoff delay"
    )


class DispatchSettings(BaseSettings):
    """Outbound automation webhook configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_", env_file=".env", extra="ignore"
    )

    webhook_url: str = Field(default="", description="Workflow webhook URL")
    timeout: float = Field(
        default=10.0, gt=0.0, description="Per-request timeout in seconds"
    )


class SummarizerSettings(BaseSettings):
    """Summary generation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUMMARIZER_", env_file=".env", extra="ignore"
    )

    backend: SummarizerBackend = Field(
        default=SummarizerBackend.LLM, description="Summarizer implementation"
    )
    api_key: str = Field(default="", description="Chat completions API key")
    api_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible API base URL",
    )
    model: str = Field(default="llama-3.3-70b-versatile", description="Chat model")
    local_model: str = Field(
        default="facebook/bart-large-cnn", description="Local summarization model"
    )
    timeout: float = Field(default=30.0, gt=0.0, description="Request timeout")


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SERVER_", env_file=".env", extra="ignore"
    )

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=".env", extra="ignore"
    )

    level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    dir: Optional[Path] = Field(default=None, description="Log directory")
    json_format: bool = Field(default=False, description="Use JSON log format")

    @field_validator("dir", mode="before")
    @classmethod
    def ensure_path(cls, v: Optional[str | Path]) -> Optional[Path]:
        """Ensure log directory is a Path object."""
        if v in (None, ""):
            return None
        return Path(v) if isinstance(v, str) else v


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides a unified interface.
    Configuration is loaded from environment variables and .env files.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment"
    )

    window: WindowSettings = Field(default_factory=WindowSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    summarizer: SummarizerSettings = Field(default_factory=SummarizerSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def validate_required(self) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys.
        """
        missing = []

        if not self.dispatch.webhook_url:
            missing.append("DISPATCH_WEBHOOK_URL")
        if (
            self.summarizer.backend == SummarizerBackend.LLM
            and not self.summarizer.api_key
        ):
            missing.append("SUMMARIZER_API_KEY")

        return missing


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Singleton Settings instance loaded from environment.
    """
    return Settings()
