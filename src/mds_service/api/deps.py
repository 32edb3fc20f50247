"""
API dependencies for the MDS service
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security.api_key import APIKeyHeader

from mds_service.core.config import Settings
from mds_service.core.exceptions import MdsConfigurationError
from mds_service.db.database import DatabaseManager
from mds_service.models.mds_models import MdsSourceConfig
from mds_service.services.mds_sync_service import MdsSyncService
from mds_service.services.metadata_ingestion_service import MetadataIngestionService

# API Key security
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def verify_api_key(
    api_key: str = Security(api_key_header),
    settings: Settings = Depends(get_settings),
) -> bool:
    """
    Verify the API key provided in the request header.

    Returns True if API key is valid, raises HTTPException otherwise.
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="API Key header is missing"
        )

    # In development mode, allow test API key
    if settings.ENVIRONMENT == "development" and api_key == "test_api_key":
        return True

    if api_key != settings.API_KEY:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API Key")

    return True


async def get_source(source_name: str, settings: Settings = Depends(get_settings)) -> MdsSourceConfig:
    """
    Resolve the source named in the path, 404 if it is not configured
    """
    try:
        return settings.get_source(source_name)
    except MdsConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e


# Service dependencies
def get_database(request: Request) -> DatabaseManager:
    return request.app.state.database


def get_ingestion_service(request: Request) -> MetadataIngestionService:
    return request.app.state.ingestion_service


def get_sync_service(request: Request) -> MdsSyncService:
    return request.app.state.sync_service
