"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
All remote repository endpoints, pacing intervals and upload limits live here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # REMOTE REPOSITORY API
    # ===================
    esploro_base_url: str = Field(
        default="https://api-na.hosted.exlibrisgroup.com/almaws/v1",
        description="Base URL of the research repository REST API"
    )
    esploro_api_key: Optional[str] = Field(
        None,
        description="API key sent with every repository request"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Transport timeout for a single repository call"
    )

    # ===================
    # CSV UPLOAD
    # ===================
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        le=100 * 1024 * 1024,
        description="Largest CSV accepted for import (10 MiB)"
    )

    # ===================
    # BATCH PACING
    # ===================
    inter_asset_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        le=10,
        description="Pause between per-asset file submissions"
    )

    # ===================
    # IMPORT JOB
    # ===================
    import_job_id: str = Field(
        default="M50762",
        description="Known id of the 'Import Research Assets Files' job"
    )
    import_job_names: list[str] = Field(
        default=[
            "Import Research Assets Files",
            "Import Asset Files",
            "Import Research Assets Files - via API - forFileUploadJobViaUpdate",
        ],
        description="Job names accepted as the file import job"
    )
    set_name_prefix: str = Field(
        default="Asset File Load",
        description="Prefix for auto-generated itemized sets"
    )
    job_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Seconds between job status polls"
    )
    job_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        le=3600,
        description="Give up polling the job after this many seconds"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def esploro_configured(self) -> bool:
        """Check if the repository API key is present."""
        return bool(self.esploro_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
