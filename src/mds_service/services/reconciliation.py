"""
Reconciliation of classified FIDO2 entries against the cached trust store.

An entry is new when no record is cached for its AAGUID or when its
``timeOfLastStatusChange`` differs from the cached value. New entries are
serialised and upserted; a serialisation failure skips only that entry.

``Reconciler.plan`` makes every decision and ``Reconciler.write`` persists
the plan, so a dry run and a real run make the same decisions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mds_service.core.exceptions import StatementSerializationError
from mds_service.db.models import MetadataRecord
from mds_service.db.protocols import TrustStore
from mds_service.models.mds_models import MetadataEntry
from mds_service.services.entry_classifier import EntryAction, EntryDecision

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    SKIP = "SKIP"
    DUPLICATE = "DUPLICATE"


@dataclass(frozen=True, slots=True)
class PlannedEntry:
    """Reconciliation decision for one FIDO2 entry of the BLOB"""

    entry: MetadataEntry
    action: ReconcileAction
    cached: MetadataRecord | None = None

    @property
    def needs_write(self) -> bool:
        return self.action in (ReconcileAction.CREATE, ReconcileAction.UPDATE)


@dataclass(frozen=True, slots=True)
class SerializedEntry:
    content: str
    status_reports: str | None
    biometric_status_reports: str | None


def is_new_entry(entry: MetadataEntry, cached: MetadataRecord | None) -> bool:
    """True when nothing is cached or the status change time differs in any direction."""
    return cached is None or entry.time_of_last_status_change != cached.time_of_last_status_change


def plan_action(entry: MetadataEntry, cached: MetadataRecord | None) -> ReconcileAction:
    if cached is None:
        return ReconcileAction.CREATE
    if is_new_entry(entry, cached):
        return ReconcileAction.UPDATE
    return ReconcileAction.SKIP


def _to_json(value: Any) -> str:
    return json.dumps(value, allow_nan=False, separators=(",", ":"))


def serialize_entry(entry: MetadataEntry) -> SerializedEntry:
    """
    Serialise the parts of an entry that are cached.

    Raises:
        StatementSerializationError: If the statement is missing or is not
            representable as strict JSON
    """
    aaguid = entry.aaguid or ""
    if entry.metadata_statement is None:
        raise StatementSerializationError(aaguid, "entry has no metadata statement")

    try:
        content = _to_json(entry.metadata_statement)
        status_reports = (
            _to_json([r.model_dump(by_alias=True, exclude_none=True) for r in entry.status_reports])
            if entry.status_reports
            else None
        )
        biometric_status_reports = (
            _to_json(
                [
                    r.model_dump(by_alias=True, exclude_none=True)
                    for r in entry.biometric_status_reports
                ]
            )
            if entry.biometric_status_reports
            else None
        )
    except (TypeError, ValueError) as e:
        raise StatementSerializationError(aaguid, str(e)) from e

    return SerializedEntry(content, status_reports, biometric_status_reports)


class Reconciler:
    """Applies classification decisions to a trust store."""

    async def plan(
        self, decisions: Iterable[EntryDecision], trust_store: TrustStore
    ) -> list[PlannedEntry]:
        """
        Decide what happens to every reconcilable entry, without writing.

        Only the first entry for an AAGUID is considered; later entries for
        the same AAGUID in the BLOB are planned as ``DUPLICATE``.
        """
        planned: list[PlannedEntry] = []
        seen: set[str] = set()

        for decision in decisions:
            if decision.action is not EntryAction.RECONCILE:
                continue
            entry = decision.entry

            if entry.aaguid in seen:
                planned.append(PlannedEntry(entry, ReconcileAction.DUPLICATE))
                continue
            seen.add(entry.aaguid)

            cached = await trust_store.find_by_aaguid(entry.aaguid)
            planned.append(PlannedEntry(entry, plan_action(entry, cached), cached))
        return planned

    async def apply(self, decisions: Iterable[EntryDecision], trust_store: TrustStore) -> int:
        """
        Write every new FIDO2 entry to the trust store.

        Args:
            decisions: Output of the entry classifier, in feed order
            trust_store: Store to reconcile against

        Returns:
            Number of records written
        """
        return await self.write(await self.plan(decisions, trust_store), trust_store)

    async def write(self, planned: Iterable[PlannedEntry], trust_store: TrustStore) -> int:
        """Persist the entries a plan marks as created or updated."""
        updated = 0

        for item in planned:
            entry = item.entry
            if item.action is ReconcileAction.DUPLICATE:
                logger.warning("Duplicate entry for %s in one BLOB, keeping the first", entry.aaguid)
                continue
            if not item.needs_write:
                logger.debug("Skip entry %s, already latest one", entry.aaguid)
                continue

            try:
                serialized = serialize_entry(entry)
            except StatementSerializationError as e:
                logger.warning("Skip entry %s: %s", entry.aaguid, e.message)
                continue

            await trust_store.upsert(
                aaguid=entry.aaguid,
                content=serialized.content,
                status_reports=serialized.status_reports,
                biometric_status_reports=serialized.biometric_status_reports,
                time_of_last_status_change=entry.time_of_last_status_change,
            )
            updated += 1
            logger.debug(
                "%s metadata for %s",
                "Stored" if item.action is ReconcileAction.CREATE else "Updated",
                entry.aaguid,
            )

        return updated
