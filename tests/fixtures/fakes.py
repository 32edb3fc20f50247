"""In-memory ledger and trust store for exercising the pipeline without a database."""

from __future__ import annotations

from mds_service.db.models import MetadataRecord, MetadataTocRecord


class InMemoryFeedLedger:
    def __init__(self) -> None:
        self.records: list[MetadataTocRecord] = []

    async def find_latest_sequence(self, source_name: str) -> int | None:
        numbers = [r.no for r in self.records if r.metadata_source == source_name]
        return max(numbers) if numbers else None

    async def append(
        self,
        source_name: str,
        no: int,
        legal_header: str | None,
        next_update: str | None,
        encoded_payload: str,
    ) -> MetadataTocRecord:
        record = MetadataTocRecord(
            id=len(self.records) + 1,
            metadata_source=source_name,
            no=no,
            legal_header=legal_header,
            next_update=next_update,
            encoded_payload=encoded_payload,
        )
        self.records.append(record)
        return record


class InMemoryTrustStore:
    def __init__(self) -> None:
        self.records: dict[str, MetadataRecord] = {}
        self.upsert_calls: list[str] = []

    async def find_by_aaguid(self, aaguid: str) -> MetadataRecord | None:
        return self.records.get(aaguid)

    async def upsert(
        self,
        aaguid: str,
        content: str,
        status_reports: str | None,
        biometric_status_reports: str | None,
        time_of_last_status_change: str | None,
    ) -> MetadataRecord:
        self.upsert_calls.append(aaguid)
        record = self.records.get(aaguid)
        if record is None:
            record = MetadataRecord(id=len(self.records) + 1, aaguid=aaguid)
            self.records[aaguid] = record
        record.content = content
        record.status_reports = status_reports
        record.biometric_status_reports = biometric_status_reports
        record.time_of_last_status_change = time_of_last_status_change
        return record
