# ============================================================
# SPDX-License-Identifier: GPL-3.0-or-later
# This program was generated as part of the AgentFoundry project.
# Copyright (C) 2025  John Brosnihan
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
# ============================================================
"""Configuration module for the Identity Service.

This module provides Pydantic-based settings validation for all environment
variables required by the Identity Service. It fails fast when required
environment variables are missing.
"""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Identity Service configuration settings.

    All required environment variables must be set before the service boots.
    The service will fail fast with descriptive errors if any required
    variable is missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment switch - controls which backends are instantiated
    identity_environment: Literal["dev", "prod"] = Field(
        default="dev",
        description=(
            "Environment mode: 'dev' uses in-memory stores and stub providers, "
            "'prod' uses the SQL user store and real OAuth providers."
        ),
    )

    # Required secrets - service will not start without these
    identity_jwt_secret: str = Field(
        ...,
        min_length=32,
        description="Secret key for signing session tokens. Must be at least 32 characters.",
    )
    google_client_id: str = Field(
        ...,
        min_length=1,
        description="Google OAuth client ID.",
    )
    google_client_secret: str = Field(
        ...,
        min_length=1,
        description="Google OAuth client secret.",
    )

    # Optional providers - enabled only when both values are present
    facebook_app_id: str | None = Field(
        default=None,
        description="Facebook App ID.",
    )
    facebook_app_secret: str | None = Field(
        default=None,
        description="Facebook App secret.",
    )
    discord_client_id: str | None = Field(
        default=None,
        description="Discord OAuth2 client ID.",
    )
    discord_client_secret: str | None = Field(
        default=None,
        description="Discord OAuth2 client secret.",
    )

    # Redirect configuration
    backend_base_url: str = Field(
        default="http://localhost:8080",
        description="Public base URL of this service; provider callbacks land under it.",
    )
    frontend_base_url: str = Field(
        default="http://localhost:8081",
        description="Base URL of the web frontend that receives success/error redirects.",
    )
    mobile_redirect_schemes: str = Field(
        default="moneymonitoring,exp",
        description="Comma-separated URI schemes accepted as mobile redirect targets.",
    )

    # OAuth flow configuration
    oauth_state_ttl_seconds: int = Field(
        default=600,
        ge=60,
        le=3600,
        description="Lifetime of a pending authorization (state + PKCE verifier). Default: 10 minutes.",
    )
    oauth_sweep_interval_seconds: int = Field(
        default=600,
        ge=1,
        le=3600,
        description="Interval between sweeps of expired pending authorizations.",
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=30.0,
        description="Timeout for each outbound call to an OAuth provider. Calls are never retried.",
    )

    # Session token configuration
    session_token_expiry_seconds: int = Field(
        default=604800,
        ge=60,
        le=2592000,
        description="Session token expiry time in seconds. Default: 7 days.",
    )

    # Database configuration (required in prod, optional in dev)
    database_url: SecretStr | None = Field(
        default=None,
        description="SQLAlchemy database URL for the user store (sensitive).",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level for the service.",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format. Use 'json' for production, 'console' for development.",
    )

    # Service configuration
    service_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the service to.",
    )
    service_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port to bind the service to.",
    )

    @field_validator("identity_jwt_secret")
    @classmethod
    def validate_jwt_secret_strength(cls, v: str) -> str:
        """Validate that the JWT secret has sufficient entropy."""
        if len(v) < 32:
            raise ValueError("IDENTITY_JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator("backend_base_url", "frontend_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that base URLs are absolute http(s) URLs without a trailing slash."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"'{v}' must be an absolute http(s) URL")
        return v.rstrip("/")

    @field_validator("mobile_redirect_schemes")
    @classmethod
    def validate_mobile_redirect_schemes(cls, v: str) -> str:
        """Reject schemes that would turn mobile redirects into web open redirects."""
        for scheme in (s.strip().lower() for s in v.split(",")):
            if scheme in ("http", "https", "javascript", "data", "file"):
                raise ValueError(f"MOBILE_REDIRECT_SCHEMES must not include '{scheme}'")
        return v

    @property
    def mobile_redirect_schemes_list(self) -> list[str]:
        """Return allowed mobile redirect schemes as a list."""
        return [s.strip().lower() for s in self.mobile_redirect_schemes.split(",") if s.strip()]

    @property
    def facebook_enabled(self) -> bool:
        """Check if Facebook credentials are configured."""
        return bool(self.facebook_app_id and self.facebook_app_secret)

    @property
    def discord_enabled(self) -> bool:
        """Check if Discord credentials are configured."""
        return bool(self.discord_client_id and self.discord_client_secret)

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode."""
        return self.identity_environment == "prod"

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.identity_environment == "dev"

    def get_redacted_config_dict(self) -> dict[str, str]:
        """Return a dictionary of configuration for logging with secrets redacted.

        Returns:
            A dictionary with redacted sensitive values.
        """
        return {
            "identity_environment": self.identity_environment,
            "identity_jwt_secret": "(set)" if self.identity_jwt_secret else "(not set)",
            "google_client_id": "(set)" if self.google_client_id else "(not set)",
            "google_client_secret": "(set)" if self.google_client_secret else "(not set)",
            "facebook_app_id": "(set)" if self.facebook_app_id else "(not set)",
            "facebook_app_secret": "(set)" if self.facebook_app_secret else "(not set)",
            "discord_client_id": "(set)" if self.discord_client_id else "(not set)",
            "discord_client_secret": "(set)" if self.discord_client_secret else "(not set)",
            "backend_base_url": self.backend_base_url,
            "frontend_base_url": self.frontend_base_url,
            "mobile_redirect_schemes": self.mobile_redirect_schemes,
            "oauth_state_ttl_seconds": str(self.oauth_state_ttl_seconds),
            "oauth_sweep_interval_seconds": str(self.oauth_sweep_interval_seconds),
            "provider_timeout_seconds": str(self.provider_timeout_seconds),
            "session_token_expiry_seconds": str(self.session_token_expiry_seconds),
            "database_url": "(set)" if self.database_url else "(not set)",
            "log_level": self.log_level,
            "log_format": self.log_format,
            "service_host": self.service_host,
            "service_port": str(self.service_port),
        }


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def validate_prod_settings(settings: Settings) -> None:
    """Validate that required production settings are present.

    In prod the user store must be durable and provider callbacks must be
    served over HTTPS, since authorization codes travel in the callback URL.

    Args:
        settings: The settings instance to validate.

    Raises:
        ConfigurationError: If required production settings are missing.
    """
    if not settings.is_prod:
        return

    missing = []

    if not settings.database_url:
        missing.append("DATABASE_URL")

    if not settings.backend_base_url.startswith("https://"):
        missing.append("BACKEND_BASE_URL (must use https in prod)")

    if missing:
        raise ConfigurationError(
            f"Production mode requires the following environment variables: {', '.join(missing)}. "
            "Either set these values or use IDENTITY_ENVIRONMENT=dev for development mode."
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function is cached to ensure settings are only loaded once.
    It will raise a ConfigurationError with a descriptive message if
    required environment variables are missing.

    Returns:
        Settings: The validated settings instance.

    Raises:
        ConfigurationError: If required environment variables are missing or invalid.
    """
    try:
        settings = Settings()
        validate_prod_settings(settings)
        return settings
    except ConfigurationError:
        raise
    except Exception as e:
        error_msg = str(e)
        if "identity_environment" in error_msg.lower():
            raise ConfigurationError(
                "IDENTITY_ENVIRONMENT must be either 'dev' or 'prod'. "
                "Use 'dev' for local development with in-memory stores and stub providers, "
                "or 'prod' for production with real backends."
            ) from e
        if "identity_jwt_secret" in error_msg.lower():
            raise ConfigurationError(
                "IDENTITY_JWT_SECRET environment variable is required and must be at least "
                "32 characters long. This secret is used to sign session tokens."
            ) from e
        if "google_client_id" in error_msg.lower():
            raise ConfigurationError(
                "GOOGLE_CLIENT_ID environment variable is required. "
                "Create an OAuth client at https://console.cloud.google.com/apis/credentials"
            ) from e
        if "google_client_secret" in error_msg.lower():
            raise ConfigurationError(
                "GOOGLE_CLIENT_SECRET environment variable is required. "
                "This is the client secret of your Google OAuth client."
            ) from e
        raise ConfigurationError(f"Configuration error: {error_msg}") from e
