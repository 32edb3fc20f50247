"""
Cached authenticator metadata API endpoints
"""

import json

from fastapi import APIRouter, Depends, HTTPException, status

from mds_service.api.deps import get_database, verify_api_key
from mds_service.db.database import DatabaseManager
from mds_service.db.models import MetadataRecord
from mds_service.db.repositories import MetadataRepository
from mds_service.models.mds_models import MetadataRecordResponse

router = APIRouter()


def _loads(value: str | None):
    return json.loads(value) if value else None


def to_response(record: MetadataRecord) -> MetadataRecordResponse:
    return MetadataRecordResponse(
        aaguid=record.aaguid,
        metadata_statement=json.loads(record.content),
        status_reports=_loads(record.status_reports),
        biometric_status_reports=_loads(record.biometric_status_reports),
        time_of_last_status_change=record.time_of_last_status_change,
    )


@router.get("/metadata/{aaguid}", response_model=MetadataRecordResponse)
async def get_metadata(
    aaguid: str,
    database: DatabaseManager = Depends(get_database),
    _: bool = Depends(verify_api_key),
):
    """
    Return the cached metadata statement for an AAGUID.
    """
    async with database.session_scope() as session:
        record = await MetadataRepository(session).find_by_aaguid(aaguid)

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"No metadata cached for {aaguid}"
        )
    return to_response(record)
