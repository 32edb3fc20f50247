from mds_service.models.mds_models import MetadataEntry
from mds_service.services.entry_classifier import classify_entries
from mds_service.services.result_aggregator import OutcomeAggregator
from tests.fixtures.feed_factory import fido2_entry, u2f_entry, uaf_entry


def test_counters_follow_classification():
    raw = [
        fido2_entry("a"),
        fido2_entry("b", attestationCertificateKeyIdentifiers=["00" * 20]),
        u2f_entry(),
        uaf_entry(),
        uaf_entry("1234#5678"),
        fido2_entry("c", statuses=["USER_KEY_REMOTE_COMPROMISE"]),
    ]
    aggregator = OutcomeAggregator(total_count=len(raw))

    aggregator.record_decisions(classify_entries(MetadataEntry.model_validate(e) for e in raw))
    aggregator.record_updates(2)
    outcome = aggregator.build()

    assert outcome.success is True
    assert outcome.reason is None
    assert outcome.total_count == 6
    assert outcome.updated_count == 2
    assert outcome.legacy_count == 2
    assert outcome.second_gen_count == 2
    assert outcome.modern_count == 2


def test_empty_run_builds_successful_zero_outcome():
    outcome = OutcomeAggregator().build()

    assert outcome.success is True
    assert outcome.total_count == outcome.updated_count == outcome.modern_count == 0
