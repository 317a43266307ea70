"""
Configuration module for the identity sync service.

This module uses Pydantic Settings to load and validate environment variables
for backend communication, identity provider integration, navigation routes,
CORS and logging.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Holds everything the session-synchronization flow needs to reach the
    backend and the identity provider.
    """

    # =========================================================================
    # Backend Service Configuration
    # =========================================================================

    BACKEND_SERVICE_URL: HttpUrl = Field(
        default="http://localhost:8080",
        description="Backend API base URL (e.g., http://backend:8080)",
    )

    BACKEND_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Total timeout for a single backend call",
        gt=0,
        le=300,
    )

    BACKEND_CONNECT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Connect timeout for backend calls",
        gt=0,
        le=60,
    )

    # =========================================================================
    # Identity Provider Configuration
    # =========================================================================

    IDP_SESSION_COOKIE: str = Field(
        default="__session",
        description="Cookie in which the identity provider stores the session token",
        min_length=1,
    )

    IDP_FRONTEND_API_URL: Optional[HttpUrl] = Field(
        None,
        description="Identity provider frontend API, used for credential sign-in",
    )

    IDP_SIGN_IN_URL: Optional[HttpUrl] = Field(
        None,
        description="Hosted sign-in page of the identity provider, used for redirect sign-in",
    )

    # =========================================================================
    # Navigation Routes
    # =========================================================================

    HOME_ROUTE: str = Field(default="/", description="Default/home route")

    SSO_CALLBACK_ROUTE: str = Field(
        default="/sso-callback",
        description="Same-origin SSO completion route",
    )

    OAUTH_CALLBACK_ROUTE: str = Field(
        default="/oauth-callback",
        description="OAuth-provider completion route",
    )

    # =========================================================================
    # Service Configuration
    # =========================================================================

    SERVICE_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the service",
    )

    SERVICE_PORT: int = Field(
        default=5173,
        description="Port to bind the service",
        ge=1,
        le=65535,
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    LOG_IDENTITY_TOKENS: bool = Field(
        default=False,
        description="Log raw identity tokens at DEBUG level (development only)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def backend_service_url_str(self) -> str:
        """Backend URL as string without trailing slash."""
        return str(self.BACKEND_SERVICE_URL).rstrip("/")

    @property
    def idp_frontend_api_url_str(self) -> Optional[str]:
        if self.IDP_FRONTEND_API_URL is None:
            return None
        return str(self.IDP_FRONTEND_API_URL).rstrip("/")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("HOME_ROUTE", "SSO_CALLBACK_ROUTE", "OAUTH_CALLBACK_ROUTE")
    @classmethod
    def validate_route(cls, v: str) -> str:
        """
        Validate that navigation routes are same-origin absolute paths.

        Raises:
            ValueError: If the route does not start with a single '/'
        """
        v = v.strip()
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(
                f"Invalid route: '{v}'. Routes must be absolute paths such as '/sso-callback'"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        v = v.upper()
        if v not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")

        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    The settings are loaded only once during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Optional[Settings] = None) -> dict:
    """
    Validate configuration settings and return a status report.

    Called during application startup so misconfiguration shows up in the logs
    before the first sign-in attempt.

    Returns:
        Dictionary with validation status and any warnings.
    """
    settings = settings or get_settings()
    errors = []
    warnings = []

    routes = [settings.HOME_ROUTE, settings.SSO_CALLBACK_ROUTE, settings.OAUTH_CALLBACK_ROUTE]
    if len(set(routes)) != len(routes):
        errors.append("HOME_ROUTE, SSO_CALLBACK_ROUTE and OAUTH_CALLBACK_ROUTE must be distinct")

    if settings.IDP_FRONTEND_API_URL is None:
        warnings.append("IDP_FRONTEND_API_URL is not set (credential sign-in disabled)")

    if settings.IDP_SIGN_IN_URL is None:
        warnings.append("IDP_SIGN_IN_URL is not set (redirect sign-in disabled)")

    if settings.LOG_IDENTITY_TOKENS:
        warnings.append("LOG_IDENTITY_TOKENS is enabled; never enable it in production")

    if settings.BACKEND_CONNECT_TIMEOUT_SECONDS > settings.BACKEND_TIMEOUT_SECONDS:
        warnings.append("BACKEND_CONNECT_TIMEOUT_SECONDS exceeds BACKEND_TIMEOUT_SECONDS")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "backend_url": settings.backend_service_url_str,
    }
