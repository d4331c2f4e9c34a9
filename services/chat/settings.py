"""
Settings and configuration for Chat Service.

Uses Pydantic Settings to manage environment variables and configuration.
"""

from typing import Dict, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    db_url_chat: str = Field(
        ...,  # Required field - the service refuses to start without it
        description="Database connection string",
        validation_alias=AliasChoices("db_url_chat", "POSTGRES_URL", "DB_URL_CHAT"),
    )
    db_environment: Optional[str] = Field(
        default=None,
        description="Force the connection profile (local or managed)",
        validation_alias=AliasChoices("db_environment", "DB_ENVIRONMENT"),
    )
    db_ssl_mode: Optional[str] = Field(
        default=None,
        description="Override the SSL mode of the connection profile",
        validation_alias=AliasChoices("db_ssl_mode", "DB_SSL_MODE"),
    )
    db_max_lifetime_seconds: Optional[int] = Field(
        default=None,
        description="Override the maximum connection lifetime in seconds",
        validation_alias=AliasChoices(
            "db_max_lifetime_seconds", "DB_MAX_LIFETIME_SECONDS"
        ),
    )
    auto_create_tables: bool = Field(
        default=False,
        description="Create tables on startup instead of relying on migrations",
    )

    # Service Configuration
    service_name: str = Field(default="chat-service", description="Service name")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=8002, description="Port to bind to")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(
        default="development",
        description="Environment (development, staging, production)",
    )

    # Session / access gate
    auth_secret: Optional[str] = Field(
        default=None,
        description="Secret used to verify session tokens",
        validation_alias=AliasChoices("auth_secret", "AUTH_SECRET"),
    )
    public_chat_read_access: bool = Field(
        default=True,
        description="Let unauthenticated callers read chat and search endpoints",
    )

    # LLM Configuration
    llm_provider: str = Field(default="openai", description="LLM provider")
    llm_model: str = Field(default="gpt-4.1-nano", description="LLM model")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    llm_timeout_seconds: float = Field(
        default=10.0, description="Timeout for a single suggestion request"
    )
    model_aliases: Dict[str, str] = Field(
        default_factory=lambda: {"chat-model": "gpt-4.1-nano"},
        description="Map of client model identifiers to provider model names",
    )

    # Autosuggest Configuration
    autosuggest_source: str = Field(
        default="mock", description="Suggestion source for typed text (mock or llm)"
    )
    starter_suggestion_source: str = Field(
        default="llm", description="Suggestion source for starters (mock or llm)"
    )
    autosuggest_min_chars: int = Field(
        default=3, description="Minimum input length before suggesting"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json or text)")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local", "test")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings
    if _settings is None:
        # In production, the required fields are set in the environment variables.
        # In unit tests, we set the singleton directly.
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
