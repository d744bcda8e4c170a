"""
Shared configuration management for the promo access layer.
"""

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PUBLIC_PATHS = (
    "/health,/ready,/metrics,/get-store,/get-promo,"
    "/get-promo-tenor,/get-promo-tenor-by-store"
)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("ACCESS_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("ACCESS_LOG_LEVEL", "log_level"))

    # Remote data service
    remote_url: str = Field(
        default="",
        validation_alias=AliasChoices("ACCESS_REMOTE_URL", "SUPABASE_URL", "remote_url"),
    )
    remote_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("ACCESS_REMOTE_API_KEY", "SUPABASE_KEY", "remote_api_key"),
    )
    remote_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("ACCESS_REMOTE_TIMEOUT_SECONDS", "remote_timeout_seconds"),
    )

    # Security
    jwt_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_JWT_SECRET", "JWT_SECRET", "jwt_secret"),
    )
    jwt_audience: str = Field(
        default="authenticated",
        validation_alias=AliasChoices("ACCESS_JWT_AUDIENCE", "jwt_audience"),
    )
    auth_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("ACCESS_AUTH_ENABLED", "auth_enabled"),
    )
    claim_cache_max_entries: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("ACCESS_CLAIM_CACHE_MAX_ENTRIES", "claim_cache_max_entries"),
    )

    # Rate limiting
    rate_limit_max_requests: int = Field(
        default=100,
        validation_alias=AliasChoices("ACCESS_RATE_LIMIT_MAX_REQUESTS", "rate_limit_max_requests"),
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        validation_alias=AliasChoices("ACCESS_RATE_LIMIT_WINDOW_SECONDS", "rate_limit_window_seconds"),
    )
    rate_limit_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("ACCESS_RATE_LIMIT_ENABLED", "RATE_LIMIT_ENABLED", "rate_limit_enabled"),
    )
    rate_limit_trust_proxy_headers: bool = Field(
        default=False,
        validation_alias=AliasChoices("ACCESS_RATE_LIMIT_TRUST_PROXY_HEADERS", "rate_limit_trust_proxy_headers"),
    )

    # Paths exempt from authentication and rate limiting
    public_paths_csv: str = Field(
        default=DEFAULT_PUBLIC_PATHS,
        validation_alias=AliasChoices("ACCESS_PUBLIC_PATHS", "public_paths_csv"),
    )

    # CORS
    cors_allowed_origins_csv: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("CORS_ALLOWED_ORIGINS", "cors_allowed_origins_csv"),
    )
    cors_allowed_methods_csv: str = Field(
        default="GET,POST,PUT,DELETE",
        validation_alias=AliasChoices("CORS_ALLOWED_METHODS", "cors_allowed_methods_csv"),
    )
    cors_max_age: int = Field(default=3600, validation_alias=AliasChoices("CORS_MAX_AGE", "cors_max_age"))

    @property
    def public_paths(self) -> List[str]:
        return _split_csv(self.public_paths_csv)

    @property
    def cors_allowed_origins(self) -> List[str]:
        return _split_csv(self.cors_allowed_origins_csv)

    @property
    def cors_allowed_methods(self) -> List[str]:
        return _split_csv(self.cors_allowed_methods_csv)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
