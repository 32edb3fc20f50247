"""
Configuration settings for the MDS service
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mds_service.core.exceptions import MdsConfigurationError
from mds_service.models.mds_models import MdsSourceConfig


class Settings(BaseSettings):
    """Settings for the MDS service"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API configuration
    API_V1_STR: str = "/v1/mds"
    PROJECT_NAME: str = "FIDO Metadata Service Sync API"
    VERSION: str = "1.0.0"

    # Environment configuration
    ENVIRONMENT: str = "development"

    # Security configuration
    API_KEY: str = ""

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/mds.db"
    DATABASE_ECHO: bool = False

    # Synchronisation configuration
    SYNC_INTERVAL_HOURS: int = 24
    FETCH_TIMEOUT_SECONDS: int = 60
    SYNC_SCHEDULER_ENABLED: bool = False

    # Logging configuration
    SERVICE_NAME: str = "mds-service"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    # Metadata feed sources, JSON encoded when set from the environment
    MDS_SOURCES: list[MdsSourceConfig] = []

    @field_validator("MDS_SOURCES")
    @classmethod
    def validate_unique_sources(cls, v: list[MdsSourceConfig]) -> list[MdsSourceConfig]:
        """Source names key the ingestion ledger and must be unique."""
        names = [source.name for source in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            msg = f"Duplicate MDS source names: {', '.join(duplicates)}"
            raise ValueError(msg)
        return v

    def get_source(self, name: str) -> MdsSourceConfig:
        """Return the configured source with the given name."""
        for source in self.MDS_SOURCES:
            if source.name == name:
                return source
        msg = f"Unknown MDS source: {name}"
        raise MdsConfigurationError(msg, "UNKNOWN_SOURCE")

    def enabled_sources(self) -> list[MdsSourceConfig]:
        return [source for source in self.MDS_SOURCES if source.enabled]


# Create global settings instance
settings = Settings()
