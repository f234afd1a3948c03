"""
Configuration for catalogworker.

Uses Pydantic for validation and environment loading.
Built once at process start and passed explicitly to the orchestrator,
uploader and HTTP layer.
"""

import os
from functools import lru_cache
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class HttpConfig(BaseModel):
    """Outbound request settings shared by every source scraper."""

    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, ge=1, description="Attempts per request")
    user_agent: str = Field(
        default="catalogworker/1.1 (+catalog scraper)",
        description="User-Agent header sent to upstream APIs",
    )


class UploadConfig(BaseModel):
    """Settings for the datastore bulk-insert stage."""

    batch_size: int = Field(default=50, ge=1, description="Records per bulk insert")
    batch_delay: float = Field(
        default=0.05, ge=0, description="Seconds between consecutive batches"
    )


class ScraperConfig(BaseSettings):
    """Master configuration for catalogworker."""

    model_config = ConfigDict(
        env_prefix="",  # No prefix, use exact names
        env_file=".env",
        extra="ignore",
    )

    # Service identity
    service_name: str = Field(default="catalogworker")
    service_version: str = Field(default="1.1.0")
    log_level: str = Field(default="INFO")

    # Datastore (PostgREST endpoint)
    datastore_url: str = Field(default="", description="Datastore base URL")
    datastore_service_key: str = Field(
        default="", description="Bearer service credential for bulk inserts"
    )

    # Optional third-party credentials
    untappd_client_id: str = Field(default="")
    untappd_client_secret: str = Field(default="")

    # Shared secret for the trigger surface, empty = open
    scraper_secret: str = Field(default="")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    http: HttpConfig = Field(default_factory=HttpConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)

    @property
    def datastore_configured(self) -> bool:
        return bool(self.datastore_url and self.datastore_service_key)

    @property
    def untappd_configured(self) -> bool:
        return bool(self.untappd_client_id and self.untappd_client_secret)

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        """Load configuration from environment variables."""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "catalogworker"),
            service_version=os.getenv("SERVICE_VERSION", "1.1.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            datastore_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
            datastore_service_key=os.getenv("SUPABASE_SERVICE_KEY", ""),
            untappd_client_id=os.getenv("UNTAPPD_CLIENT_ID", ""),
            untappd_client_secret=os.getenv("UNTAPPD_CLIENT_SECRET", ""),
            scraper_secret=os.getenv("SCRAPER_SECRET", ""),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            http=HttpConfig(
                timeout=float(os.getenv("SCRAPER_HTTP_TIMEOUT", "30.0")),
                max_retries=int(os.getenv("SCRAPER_MAX_RETRIES", "3")),
            ),
            upload=UploadConfig(
                batch_size=int(os.getenv("UPLOAD_BATCH_SIZE", "50")),
                batch_delay=float(os.getenv("UPLOAD_BATCH_DELAY", "0.05")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> ScraperConfig:
    """Get the process-wide configuration (loaded once from the environment)."""
    return ScraperConfig.from_env()
