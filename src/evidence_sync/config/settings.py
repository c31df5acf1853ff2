"""
Evidence Sync Settings

Configuration management using Pydantic settings with environment variable support.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Evidence sync configuration"""

    # Service Configuration
    service_name: str = Field(default="evidence-sync", description="Service name")
    environment: str = Field(default="development", description="Environment (development, production)")
    log_level: str = Field(default="INFO", description="Root log level")

    # Remote Store Configuration
    # DATABASE_URL unset or empty: offline mode, the in-memory case is the
    # only source of truth for the session.
    database_url: Optional[str] = Field(
        default=None,
        description="Remote store connection URL (e.g. sqlite+aiosqlite:///./evidence.db)"
    )

    db_connect_attempts: int = Field(default=3, description="Connection attempts before going offline")
    db_connect_base_delay: float = Field(default=0.5, description="Base backoff delay in seconds")

    # Media Configuration
    # NOTE: STORAGE_PROVIDER is read directly by the storage factory via os.getenv()
    media_inline_url_limit: int = Field(
        default=500_000,
        description="Largest data: URL (in characters) persisted inline"
    )
    media_key_prefix: str = Field(
        default="evidence-media",
        description="Storage key prefix for uploaded media"
    )

    # Identifiers
    case_id_prefix: str = Field(default="CASE", description="Prefix for generated case ids")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_offline(self) -> bool:
        """True when no remote store is configured"""
        return not (self.database_url and self.database_url.strip())


# Global settings instance
settings = Settings()
