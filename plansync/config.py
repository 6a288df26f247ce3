"""
Configuration management for Plansync.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_GOOGLE_SCOPES = " ".join([
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
])


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/plansync.db",
        description="Database connection URL"
    )

    # Credential encryption
    token_encryption_key: str = Field(
        default="",
        description="Base64-encoded 32-byte key used to encrypt stored OAuth credentials"
    )

    # Google OAuth Configuration
    google_oauth_client_id: str = Field(
        default="",
        description="Google OAuth 2.0 client ID"
    )
    google_oauth_client_secret: str = Field(
        default="",
        description="Google OAuth 2.0 client secret"
    )
    google_oauth_redirect_uri: str = Field(
        default="http://localhost:8000/integrations/google/callback",
        description="OAuth redirect URI (must match Google Cloud Console)"
    )
    google_oauth_scopes: str = Field(
        default=DEFAULT_GOOGLE_SCOPES,
        description="Space-separated OAuth scopes requested on connect"
    )

    # Sync behaviour
    sync_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Total attempts for a remote call that fails transiently"
    )
    sync_retry_base_delay: float = Field(
        default=0.5,
        ge=0,
        description="First backoff delay in seconds (doubles on each attempt)"
    )
    sync_retry_max_delay: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single backoff delay in seconds"
    )
    token_refresh_margin_minutes: int = Field(
        default=5,
        ge=0,
        description="Refresh access tokens expiring within this many minutes"
    )
    availability_window_days: int = Field(
        default=90,
        ge=1,
        description="Default availability sync window length"
    )
    sync_send_updates: Literal["all", "externalOnly", "none"] = Field(
        default="all",
        description="Google sendUpdates mode for invite notifications"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    @property
    def uses_google_oauth(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(self.google_oauth_client_id and self.google_oauth_client_secret)

    @property
    def google_scope_list(self) -> list[str]:
        """OAuth scopes as a list."""
        return [s for s in self.google_oauth_scopes.split() if s]

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if not self.uses_postgresql:
            errors.append(
                "Production requires PostgreSQL. "
                "Set DATABASE_URL to a PostgreSQL connection string."
            )

        if not self.token_encryption_key:
            errors.append("TOKEN_ENCRYPTION_KEY is required in production.")

        if not self.uses_google_oauth:
            errors.append(
                "GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET are required in production."
            )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.

    Example:
        >>> from plansync.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.database_url)
    """
    return Settings()
