"""
Shared configuration management for the Stylino storefront services.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STYLINO_",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Persistence
    postgres_dsn: str = Field(default="postgresql://localhost:5432/stylino")
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)

    # Sessions
    session_secret: str = Field(default="change-me")
    session_cookie_name: str = Field(default="stylino_session")

    # Catalog caches (TTL in seconds)
    categories_cache_max_entries: int = Field(default=50)
    categories_cache_ttl: float = Field(default=120)
    product_cache_max_entries: int = Field(default=200)
    product_cache_ttl: float = Field(default=60)
    settings_cache_max_entries: int = Field(default=20)
    settings_cache_ttl: float = Field(default=60)

    # Observability
    enable_metrics: bool = Field(default=True)


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
