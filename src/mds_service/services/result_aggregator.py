"""Per-run counters for an ingestion."""

from __future__ import annotations

from collections.abc import Iterable

from mds_service.models.mds_models import IngestionOutcome
from mds_service.services.entry_classifier import EntryAction, EntryDecision


class OutcomeAggregator:
    """Accumulates counters over one BLOB and builds the final outcome."""

    def __init__(self, total_count: int = 0) -> None:
        self.total_count = total_count
        self.updated_count = 0
        self.legacy_count = 0
        self.second_gen_count = 0
        self.modern_count = 0

    def record_decision(self, decision: EntryDecision) -> None:
        if decision.action is EntryAction.LEGACY:
            self.legacy_count += 1
            return
        if decision.second_gen:
            self.second_gen_count += 1
        if decision.modern:
            self.modern_count += 1

    def record_decisions(self, decisions: Iterable[EntryDecision]) -> None:
        for decision in decisions:
            self.record_decision(decision)

    def record_updates(self, count: int) -> None:
        self.updated_count += count

    def build(self) -> IngestionOutcome:
        return IngestionOutcome(
            success=True,
            total_count=self.total_count,
            updated_count=self.updated_count,
            legacy_count=self.legacy_count,
            second_gen_count=self.second_gen_count,
            modern_count=self.modern_count,
        )
