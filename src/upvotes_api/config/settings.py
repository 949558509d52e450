"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration."""

    # Order store (Supabase PostgREST or a direct database DSN)
    store_backend: str = "supabase"
    supabase_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "VITE_SUPABASE_URL"),
    )
    supabase_service_role_key: Optional[str] = None
    database_url: Optional[str] = None

    # BuyUpvotes API Configuration
    buyupvotes_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("BUYUPVOTES_API_KEY", "VITE_BUYUPVOTES_API_KEY"),
    )
    buyupvotes_api_host: str = "https://api.buyupvotes.io"
    request_timeout_seconds: float = 10.0

    # Reconciliation tuning
    reconcile_kinds: str = "upvote"
    batch_size: int = 5
    inter_batch_delay_seconds: float = 2.0
    cooldown_hours: float = 2.0
    page_limit: int = 100
    manual_refresh_cooldown_seconds: float = 30.0

    # Scheduler Configuration
    scheduler_enabled: bool = True
    schedule_cron: str = "0 */4 * * *"
    run_on_startup: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 9000
    log_level: str = "INFO"
    environment: str = "development"

    # Dashboard Configuration
    dashboard_api_key: Optional[str] = None

    # GlitchTip Error Monitoring
    glitchtip_dsn: Optional[str] = None

    # Redis (run lease and history)
    redis_enabled: bool = True
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    run_lock_ttl_seconds: int = 1800

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"  # Ignore unrelated variables shared with the frontend .env


# Create a global settings instance
settings = Settings()
