"""Database repositories used by the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import MetadataRecord, MetadataTocRecord


class MetadataTocRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_latest_sequence(self, source_name: str) -> Optional[int]:
        stmt = select(func.max(MetadataTocRecord.no)).where(
            MetadataTocRecord.metadata_source == source_name
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def append(
        self,
        source_name: str,
        no: int,
        legal_header: str | None,
        next_update: str | None,
        encoded_payload: str,
    ) -> MetadataTocRecord:
        record = MetadataTocRecord(
            metadata_source=source_name,
            no=no,
            legal_header=legal_header,
            next_update=next_update,
            encoded_payload=encoded_payload,
        )
        self._session.add(record)
        # Surface a concurrent insert of the same version before any entry is written
        await self._session.flush()
        return record

    async def list_by_source(self, source_name: str) -> list[MetadataTocRecord]:
        stmt = (
            select(MetadataTocRecord)
            .where(MetadataTocRecord.metadata_source == source_name)
            .order_by(MetadataTocRecord.no)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class MetadataRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_aaguid(self, aaguid: str) -> Optional[MetadataRecord]:
        stmt = select(MetadataRecord).where(MetadataRecord.aaguid == aaguid)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def upsert(
        self,
        aaguid: str,
        content: str,
        status_reports: str | None,
        biometric_status_reports: str | None,
        time_of_last_status_change: str | None,
    ) -> MetadataRecord:
        record = await self.find_by_aaguid(aaguid)
        if record is None:
            record = MetadataRecord(
                aaguid=aaguid,
                content=content,
                status_reports=status_reports,
                biometric_status_reports=biometric_status_reports,
                time_of_last_status_change=time_of_last_status_change,
            )
            self._session.add(record)
        else:
            record.content = content
            record.status_reports = status_reports
            record.biometric_status_reports = biometric_status_reports
            record.time_of_last_status_change = time_of_last_status_change
            record.updated_at = datetime.now(timezone.utc)
        await self._session.flush()
        return record

    async def list_all(self) -> list[MetadataRecord]:
        result = await self._session.execute(select(MetadataRecord).order_by(MetadataRecord.id))
        return list(result.scalars().all())
