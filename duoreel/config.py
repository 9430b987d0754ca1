"""
Application Configuration

Load settings from environment variables with validation.
"""

from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Environment
    environment: str = "development"
    debug: bool = True

    # HTTP surface
    api_prefix: str = "/make-server-5623fde1"
    cors_origins: str = "*"  # Comma-separated

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""  # Service role key, server-side only

    # Key-value table (key text primary key, value jsonb)
    kv_table: str = "kv_store_5623fde1"
    kv_page_size: int = 1000

    # External APIs
    tmdb_api_key: Optional[str] = None
    tmdb_read_access_token: Optional[str] = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    omdb_api_key: Optional[str] = None
    omdb_base_url: str = "https://www.omdbapi.com/"
    upstream_timeout_seconds: float = 10.0

    # Rate Limiting
    rate_limit_per_minute: int = 60

    # Discovery
    discover_target_count: int = 20
    discover_max_attempts: int = 5
    discover_page_delay_ms: int = 250
    discover_min_vote_count: int = 100
    watch_region: str = "US"

    # Bulk import
    import_concurrency: int = 5

    # Quota Management
    omdb_daily_quota_limit: int = 1000
    rating_refresh_delay_ms: int = 200

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def supabase_configured(self) -> bool:
        """True when the PostgREST key-value backend can be used."""
        return bool(self.supabase_url and self.supabase_service_key)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
