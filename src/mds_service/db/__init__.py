"""Persistence layer for cached metadata and the BLOB ingestion ledger."""

from .database import DatabaseConfig, DatabaseManager
from .models import Base, MetadataRecord, MetadataTocRecord
from .protocols import FeedLedger, TrustStore
from .repositories import MetadataRepository, MetadataTocRepository

__all__ = [
    "Base",
    "DatabaseConfig",
    "DatabaseManager",
    "FeedLedger",
    "MetadataRecord",
    "MetadataRepository",
    "MetadataTocRecord",
    "MetadataTocRepository",
    "TrustStore",
]
