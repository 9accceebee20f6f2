"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from insightbot.config import get_settings

    settings = get_settings()
    print(settings.llm.default_provider)
    print(settings.cache.tables_ttl_seconds)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    default_provider: Literal["anthropic", "openai"] = Field(
        default="anthropic", description="Default LLM provider"
    )

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514", description="Anthropic model for all pipeline stages"
    )
    anthropic_model_mini: str = Field(
        default="claude-3-5-haiku-20241022", description="Anthropic lightweight model"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key",
        min_length=20,
    )
    openai_model: str = Field(default="gpt-4o", description="OpenAI model for complex tasks")
    openai_model_mini: str = Field(default="gpt-4o-mini", description="OpenAI lightweight model")

    # Common settings
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Default temperature when a stage does not override it",
    )
    max_tokens: int = Field(
        default=1500,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @model_validator(mode="after")
    def validate_provider_keys(self) -> "LLMSettings":
        """Ensure an API key is set for the selected provider."""
        provider_key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }
        if not provider_key_map[self.default_provider]:
            raise ValueError(
                f"API key required for {self.default_provider} provider. "
                f"Set LLM_{self.default_provider.upper()}_API_KEY"
            )
        return self


class StoreSettings(BaseSettings):
    """Analytics data store configuration."""

    url: AnyUrl | None = Field(
        None,
        description="PostgreSQL connection URL of the analytics store",
    )
    schema_name: str = Field(
        default="public",
        description="Schema whose tables are exposed to the pipeline",
    )
    pool_size: int = Field(
        default=5,
        gt=0,
        le=20,
        description="Connection pool size",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Statement timeout in seconds",
    )
    allow_raw_query: bool = Field(
        default=False,
        description="Expose the raw query capability (read-only transactions)",
    )
    count_distinct_function: str = Field(
        default="count_distinct_values",
        description="Stored function used for exact distinct counts",
    )
    page_size: int = Field(
        default=1000,
        gt=0,
        le=10000,
        description="Page size for client-side distinct counting",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | AnyUrl | None) -> str | AnyUrl | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class CacheSettings(BaseSettings):
    """Schema cache configuration."""

    tables_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Time-to-live of the discovered table catalog",
    )
    schema_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Time-to-live of each per-table schema entry",
    )
    sample_rows: int = Field(
        default=2,
        ge=0,
        le=2,
        description="Sample rows fetched per table schema",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        extra="ignore",
    )


class PipelineSettings(BaseSettings):
    """Pipeline behavior settings."""

    history_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Conversation turns kept in the context store",
    )
    default_row_limit: int = Field(
        default=100,
        gt=0,
        description="Row cap applied to scoped reads without LIMIT",
    )
    heuristic_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence assigned to heuristically derived intents",
    )
    intent_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    intent_max_tokens: int = Field(default=500, gt=0)
    query_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    query_max_tokens: int = Field(default=800, gt=0)
    analyst_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    analyst_max_tokens: int = Field(default=500, gt=0)
    formatter_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    formatter_max_tokens: int = Field(default=1200, gt=0)
    response_max_chars: int = Field(
        default=4000,
        gt=100,
        description="Hard ceiling for the user-facing message",
    )
    prompt_max_columns: int = Field(
        default=15,
        gt=0,
        description="Columns listed per table in the intent prompt",
    )
    prompt_max_rows: int = Field(
        default=50,
        gt=0,
        description="Result rows embedded in analysis/formatting prompts",
    )

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, store, cache, pipeline, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Enable debug mode
        IDENTITY_PATH: Optional YAML file overriding the assistant identity
        LLM_*: LLM provider configuration (see LLMSettings)
        STORE_*: Data store configuration (see StoreSettings)
        CACHE_*: Schema cache configuration (see CacheSettings)
        PIPELINE_*: Pipeline behavior (see PipelineSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.llm.default_provider
        'anthropic'
        >>> settings.cache.tables_ttl_seconds
        300.0
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="InsightBot",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    identity_path: Path | None = Field(
        default=None,
        description="YAML file with the assistant identity (name, tables, examples)",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "llm_provider": self.llm.default_provider,
                "tables_ttl_seconds": self.cache.tables_ttl_seconds,
                "raw_query_enabled": self.store.allow_raw_query,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("INSIGHTBOT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses functools.lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
