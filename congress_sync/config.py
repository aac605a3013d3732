"""
Configuration management for the Congress sync engine.

Supports multiple environments (local, development, production) with
different database and upstream API settings.

Responsibility: Centralized configuration and environment management
"""

from enum import Enum
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment"""
    LOCAL = "local"
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    # Connection settings - prioritize DATABASE_URL env var
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    driver: str = Field(default="postgresql+asyncpg")
    host: Optional[str] = Field(default="localhost")
    port: Optional[int] = Field(default=5432)
    database: str = Field(default="congress_sync")
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)

    # Connection pool settings
    pool_size: int = Field(default=5)
    max_overflow: int = Field(default=10)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=3600)

    # Query settings
    echo: bool = Field(default=False)
    echo_pool: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True  # Allow alias matching
    )

    @property
    def connection_string(self) -> str:
        """
        Build database connection string.

        Returns:
            SQLAlchemy connection string
        """
        # Use DATABASE_URL env var if provided
        if self.database_url:
            url = self.database_url
            # Ensure async driver for async connections
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            elif url.startswith("sqlite://"):
                url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
            return url

        if self.driver.startswith("sqlite"):
            return f"{self.driver}:///{self.database}"

        # PostgreSQL: use host/port/credentials
        auth = ""
        if self.username:
            auth = self.username
            if self.password:
                auth = f"{auth}:{self.password}"
            auth = f"{auth}@"

        host_port = self.host or "localhost"
        if self.port:
            host_port = f"{host_port}:{self.port}"

        return f"{self.driver}://{auth}{host_port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured store is SQLite (local runs and tests)"""
        return self.connection_string.startswith("sqlite")


class CongressApiConfig(BaseSettings):
    """Congress.gov API configuration"""

    key: Optional[str] = Field(default=None, description="Congress.gov API key")
    base_url: str = Field(default="https://api.congress.gov/v3")
    format: str = Field(default="json")

    max_page_size: int = Field(default=250)  # API max per page
    request_timeout: float = Field(default=30.0)  # seconds
    user_agent: str = Field(default="CongressSync/1.0")

    # Pacing (token bucket) and the documented upstream quota
    requests_per_second: float = Field(default=2.0)
    hourly_limit: int = Field(default=5000)

    model_config = SettingsConfigDict(
        env_prefix="CONGRESS_API_",
        case_sensitive=False,
        extra="ignore"
    )


class SyncConfig(BaseSettings):
    """Synchronization strategy and throughput settings"""

    enabled: bool = Field(default=True)
    current_congress: int = Field(default=118)

    # Incremental: recent updates only
    incremental_window_days: int = Field(default=30)
    incremental_bill_limit: int = Field(default=200)
    incremental_member_limit: int = Field(default=100)

    # Stale: catch-up on records not synced recently
    stale_hours: int = Field(default=48)
    stale_bill_limit: int = Field(default=100)

    # Priority: watch-listed bills and the active session
    priority_window_days: int = Field(default=90)
    priority_bill_limit: int = Field(default=250)
    priority_threshold: int = Field(default=5)

    # Enrichment: detail-fetch bills whose list rows lack sponsor or policy data
    enrich_limit: int = Field(default=50)

    # Full: whole congress
    full_limit: int = Field(default=500)

    # Hearings
    hearing_limit: int = Field(default=200)
    upcoming_hearing_days: int = Field(default=14)
    recent_hearing_days: int = Field(default=7)

    # Members
    member_page_size: int = Field(default=250)
    request_threshold: int = Field(default=500)  # Stop paging when this many requests remain

    # Parallel detail fetches
    concurrency: int = Field(default=3)
    delay_between_seconds: float = Field(default=0.15)
    parallel_retry: bool = Field(default=True)
    parallel_max_retries: int = Field(default=2)

    # Scheduling
    cron_schedule: str = Field(default="0 * * * *")  # Hourly

    model_config = SettingsConfigDict(
        env_prefix="CONGRESS_SYNC_",
        case_sensitive=False,
        extra="ignore"
    )


class AppConfig(BaseSettings):
    """Application configuration"""

    # Environment
    environment: Environment = Field(default=Environment.LOCAL)
    debug: bool = Field(default=True)

    # Application metadata
    app_name: str = Field(default="Congress Sync")
    app_version: str = Field(default="1.0.0")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        extra="ignore"
    )


class Settings(BaseSettings):
    """
    Global settings container.

    Loads configuration from:
    1. Environment variables
    2. .env file
    3. Default values

    Example:
        # Local development (PostgreSQL)
        settings = Settings()

        # Tests (in-memory SQLite)
        settings = Settings(
            db=DatabaseConfig(database_url="sqlite+aiosqlite:///:memory:")
        )
    """

    app: AppConfig = Field(default_factory=AppConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    congress_api: CongressApiConfig = Field(default_factory=CongressApiConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
