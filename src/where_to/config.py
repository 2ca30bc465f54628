"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    yelp_api_key: str
    yelp_base_url: str = "https://api.yelp.com/v3"
    search_radius_meters: int = 16093
    search_limit: int = 20
    catalog_cache_ttl_seconds: int = 300
    notification_webhook_url: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
