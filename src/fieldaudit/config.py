"""Package configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fieldaudit.core.constants import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_DATETIME_FORMAT,
    DEFAULT_TIME_FORMAT,
    LOG_LEVELS,
)


class Settings(BaseSettings):
    """Audit settings loaded from environment variables.

    All variables are prefixed with ``FIELDAUDIT_``, e.g.
    ``FIELDAUDIT_NO_AUDIT=true`` disables auditing globally.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELDAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite://"
    database_echo: bool = False

    # Auditing
    no_audit: bool = False
    loose_string_comparison: bool = False
    render_on_write: bool = True

    # Rendering
    time_format: str = DEFAULT_TIME_FORMAT
    date_format: str = DEFAULT_DATE_FORMAT
    datetime_format: str = DEFAULT_DATETIME_FORMAT

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level and reject unknown names.

        Args:
            v: The configured level name

        Returns:
            The upper-cased level name

        Raises:
            ValueError: If the level is not a standard logging level
        """
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("time_format", "date_format", "datetime_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Reject blank strftime formats."""
        if not v.strip():
            raise ValueError("Date/time formats must not be empty")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
