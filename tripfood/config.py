from typing import Final

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_DATABASE_URL, DEFAULT_DB_NAME


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    debug: bool = Field(default=True, description="Enable debug mode")

    # Application configuration
    app_name: str = Field(default="TripFood", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Storage configuration
    database_url: str = Field(
        default=DEFAULT_DATABASE_URL, description="Database connection URL"
    )
    db_name: str = Field(default=DEFAULT_DB_NAME, description="Database name for SQLite")

    # Observability
    enable_telemetry: bool = Field(
        default=False, description="Export OpenTelemetry spans to the console"
    )

    # Logging configuration
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )
    log_level: str | None = Field(
        default=None, description="Override the debug-derived log level"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL, handling SQLite with db_name."""
        if self.database_url == DEFAULT_DATABASE_URL and self.db_name != DEFAULT_DB_NAME:
            return f"sqlite:///./{self.db_name}.db"
        return self.database_url

    @computed_field  # type: ignore[prop-decorator]
    @property
    def async_database_url(self) -> str:
        """The effective URL rewritten for an async driver."""
        url = self.effective_database_url
        if url.startswith("sqlite+aiosqlite://") or url.startswith(
            "postgresql+asyncpg://"
        ):
            return url
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        raise ValueError(f"Unsupported database URL: {url}")


# Global settings instance
settings: Final = Settings()
