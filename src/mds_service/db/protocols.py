"""Protocol definitions for the persistence collaborators of the pipeline.

The ingestion pipeline depends only on these two interfaces, so the
decision logic can be exercised with in-memory stand-ins and the SQLAlchemy
repositories can be swapped for another store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import MetadataRecord, MetadataTocRecord


@runtime_checkable
class FeedLedger(Protocol):
    """Append-only record of accepted metadata BLOB versions per source."""

    async def find_latest_sequence(self, source_name: str) -> int | None:
        """Return the highest accepted sequence number for a source."""
        ...

    async def append(
        self,
        source_name: str,
        no: int,
        legal_header: str | None,
        next_update: str | None,
        encoded_payload: str,
    ) -> MetadataTocRecord:
        """Record an accepted BLOB version."""
        ...


@runtime_checkable
class TrustStore(Protocol):
    """Cached metadata keyed by AAGUID."""

    async def find_by_aaguid(self, aaguid: str) -> MetadataRecord | None:
        """Return the cached record for an authenticator model."""
        ...

    async def upsert(
        self,
        aaguid: str,
        content: str,
        status_reports: str | None,
        biometric_status_reports: str | None,
        time_of_last_status_change: str | None,
    ) -> MetadataRecord:
        """Create the record or overwrite the existing one in place."""
        ...
