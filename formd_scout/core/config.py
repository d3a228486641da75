"""
Configuration module with strict validation.

Key principles:
- APP STARTUP does NOT require SEC_USER_AGENT
- Any outbound SEC request DOES require it (fails early with clear error)
- Pacing, retry and timeout settings are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from formd_scout.core.api_errors import ConfigurationError


class MissingUserAgentError(ConfigurationError):
    """Raised when an SEC request is attempted without a contact User-Agent."""

    def __init__(self, message: str):
        super().__init__(message, source="sec", missing_config="SEC_USER_AGENT")


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy connection URL (PostgreSQL in production)"
    )

    # SEC identification (OPTIONAL for startup, REQUIRED for ingestion)
    sec_user_agent: Optional[str] = Field(
        default=None,
        description="Contact-identifying User-Agent, e.g. 'Acme Corp ops@acme.com'"
    )

    # Pacing
    sec_rate_limit_delay: float = Field(
        default=0.15,
        ge=0.15,
        le=10.0,
        description="Minimum seconds between consecutive outbound requests"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first attempt for transient failures"
    )

    initial_backoff: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Backoff base in seconds; retry i waits initial_backoff * 2**i"
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Per-request HTTP timeout in seconds"
    )

    backfill_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Default look-back window of the backfill script"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    def require_sec_user_agent(self) -> str:
        """
        Get the SEC User-Agent, raising clear error if missing.

        Call this before building any outbound SEC request.

        Raises:
            MissingUserAgentError: If the user agent is not configured

        Returns:
            str: The user agent string
        """
        if not self.sec_user_agent or not self.sec_user_agent.strip():
            raise MissingUserAgentError(
                "SEC_USER_AGENT is required for SEC EDGAR requests. "
                "Set it to a name and contact email, e.g. 'Acme Corp ops@acme.com'. "
                "See: https://www.sec.gov/os/accessing-edgar-data"
            )
        return self.sec_user_agent.strip()


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
