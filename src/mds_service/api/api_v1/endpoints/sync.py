"""
Metadata BLOB synchronization API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from mds_service.api.deps import (
    get_ingestion_service,
    get_settings,
    get_source,
    get_sync_service,
    verify_api_key,
)
from mds_service.core.config import Settings
from mds_service.core.exceptions import MdsFetchError
from mds_service.models.mds_models import (
    IngestionOutcome,
    IngestTokenRequest,
    MdsSourceConfig,
    SourceSyncStatus,
    SyncStatusResponse,
)
from mds_service.services.mds_sync_service import MdsSyncService
from mds_service.services.metadata_ingestion_service import MetadataIngestionService

router = APIRouter()


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    service: MdsSyncService = Depends(get_sync_service),
    settings: Settings = Depends(get_settings),
    _: bool = Depends(verify_api_key),
):
    """
    Return the last synchronization result of every configured source.
    """
    return SyncStatusResponse(
        sources=[
            SourceSyncStatus(
                source=source.name,
                last_successful_sync=service.last_sync.get(source.name),
                last_outcome=service.last_outcomes.get(source.name),
            )
            for source in settings.MDS_SOURCES
        ]
    )


@router.post("/sync/{source_name}", response_model=IngestionOutcome)
async def sync_source(
    source: MdsSourceConfig = Depends(get_source),
    service: MdsSyncService = Depends(get_sync_service),
    _: bool = Depends(verify_api_key),
):
    """
    Fetch and ingest the metadata BLOB of one source.

    Ingestion failures such as an untrusted signer or a stale BLOB are
    reported in the outcome body; only a failed download is an HTTP error.
    """
    try:
        return await service.sync_source(source)
    except MdsFetchError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e


@router.post("/ingest/{source_name}", response_model=IngestionOutcome)
async def ingest_token(
    request: IngestTokenRequest,
    source: MdsSourceConfig = Depends(get_source),
    service: MetadataIngestionService = Depends(get_ingestion_service),
    _: bool = Depends(verify_api_key),
):
    """
    Ingest a metadata BLOB posted in the request body.
    """
    return await service.ingest(request.url, request.token, source)
