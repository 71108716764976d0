from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./bokun_sync.db",
        alias="DATABASE_URL"
    )

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # ==============================================
    # Bokun Integration Settings (Server-Side Only!)
    # ==============================================
    # Webhook secret for validating incoming webhooks (HMAC-SHA256)
    bokun_webhook_secret: str = Field(default="", alias="BOKUN_WEBHOOK_SECRET")

    # REST API credentials used to sign booking-search calls
    bokun_api_url: str = Field(default="https://api.bokun.io", alias="BOKUN_API_URL")
    bokun_access_key: str = Field(default="", alias="BOKUN_ACCESS_KEY")
    bokun_secret_key: str = Field(default="", alias="BOKUN_SECRET_KEY")

    # HTTP timeout for Bokun requests
    bokun_timeout_seconds: int = Field(default=30, alias="BOKUN_TIMEOUT_SECONDS")

    # Sync window (months relative to today)
    bokun_sync_months_back: int = Field(default=6, alias="BOKUN_SYNC_MONTHS_BACK")
    bokun_sync_months_ahead: int = Field(default=3, alias="BOKUN_SYNC_MONTHS_AHEAD")

    # Pagination control
    bokun_page_size: int = Field(default=100, alias="BOKUN_PAGE_SIZE")
    bokun_max_pages: int = Field(default=20, alias="BOKUN_MAX_PAGES")  # circuit breaker
    bokun_page_delay_seconds: float = Field(default=0.1, alias="BOKUN_PAGE_DELAY_SECONDS")

    # Products fetched in parallel during a full sync
    bokun_sync_concurrency: int = Field(default=2, alias="BOKUN_SYNC_CONCURRENCY")

    # Availability cache TTL
    availability_cache_ttl_minutes: int = Field(default=15, alias="AVAILABILITY_CACHE_TTL_MINUTES")

    # Periodic full resync inside the API process (0 = disabled, use run_sync.py from cron)
    cache_sync_interval_minutes: int = Field(default=0, alias="CACHE_SYNC_INTERVAL_MINUTES")

    @field_validator('bokun_max_pages', 'bokun_page_size', 'bokun_sync_concurrency')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Pagination and concurrency limits must be at least 1"""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def has_bokun_credentials(self) -> bool:
        """Check if REST API credentials are present"""
        return bool(self.bokun_access_key and self.bokun_secret_key)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins or ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
