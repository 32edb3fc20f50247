"""
Main API router aggregating all v1 endpoints
"""

from fastapi import APIRouter

from mds_service.api.api_v1.endpoints import metadata, sync

api_router = APIRouter()

api_router.include_router(sync.router, tags=["Sync"])
api_router.include_router(metadata.router, tags=["Metadata"])
