"""
Status filtering and protocol-family classification of BLOB entries.

Pure functions only: every entry is turned into an ``EntryDecision`` and the
persistence stage acts on those decisions afterwards.

Families:

- legacy (UAF): entry carries an ``aaid``. Counted, never cached. This trust
  store serves FIDO2 registrations only; whether UAF entries should be
  cached is a policy question for the service owner.
- second generation (U2F): entry carries attestation certificate key identifiers.
- modern (FIDO2): entry carries an ``aaguid``. The only family that is cached.

An entry may be both U2F and FIDO2.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from mds_service.models.mds_models import AuthenticatorStatus, MetadataEntry, StatusReport

logger = logging.getLogger(__name__)

# Conformance policy: these statuses on the most recent report disqualify an entry
DISQUALIFYING_STATUSES = frozenset(
    {
        AuthenticatorStatus.USER_VERIFICATION_BYPASS.value,
        AuthenticatorStatus.ATTESTATION_KEY_COMPROMISE.value,
        AuthenticatorStatus.USER_KEY_REMOTE_COMPROMISE.value,
        AuthenticatorStatus.USER_KEY_PHYSICAL_COMPROMISE.value,
    }
)


class EntryAction(str, Enum):
    """What the pipeline does with a classified entry"""

    REJECTED_STATUS = "REJECTED_STATUS"
    LEGACY = "LEGACY"
    COUNT_ONLY = "COUNT_ONLY"
    RECONCILE = "RECONCILE"


@dataclass(frozen=True, slots=True)
class EntryDecision:
    entry: MetadataEntry
    action: EntryAction
    second_gen: bool = False
    modern: bool = False


def most_recent_status_report(entry: MetadataEntry) -> StatusReport | None:
    """
    Return the entry's most recent status report.

    The BLOB lists status reports newest first, so this is the first report
    in feed order. Returns None for an entry without reports.
    """
    return entry.status_reports[0] if entry.status_reports else None


def is_acceptable_status(report: StatusReport | None) -> bool:
    return report is None or report.status not in DISQUALIFYING_STATUSES


def is_legacy_entry(entry: MetadataEntry) -> bool:
    return bool(entry.aaid)


def is_second_gen_entry(entry: MetadataEntry) -> bool:
    return bool(entry.attestation_certificate_key_identifiers)


def is_modern_entry(entry: MetadataEntry) -> bool:
    return bool(entry.aaguid)


def classify_entry(entry: MetadataEntry) -> EntryDecision:
    report = most_recent_status_report(entry)
    if not is_acceptable_status(report):
        logger.debug("Ignore entry due to status: %s", report.status)
        return EntryDecision(entry, EntryAction.REJECTED_STATUS)

    if is_legacy_entry(entry):
        logger.debug("Ignore UAF metadata entry %s", entry.aaid)
        return EntryDecision(entry, EntryAction.LEGACY)

    second_gen = is_second_gen_entry(entry)
    modern = is_modern_entry(entry)
    action = EntryAction.RECONCILE if modern else EntryAction.COUNT_ONLY
    return EntryDecision(entry, action, second_gen=second_gen, modern=modern)


def classify_entries(entries: Iterable[MetadataEntry]) -> list[EntryDecision]:
    """Classify every entry, preserving feed order."""
    return [classify_entry(entry) for entry in entries]
