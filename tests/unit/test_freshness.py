import pytest

from mds_service.core.exceptions import StaleFeedError
from mds_service.models.mds_models import FeedPayload
from mds_service.services.freshness import ALREADY_UP_TO_DATE, check_freshness
from tests.fixtures.feed_factory import blob_payload, fido2_entry


def _payload(no: int) -> FeedPayload:
    return FeedPayload.model_validate(blob_payload(no, [fido2_entry("a"), fido2_entry("b")]))


def test_first_blob_for_source_is_fresh():
    check_freshness(None, _payload(1))


def test_newer_blob_is_fresh():
    check_freshness(5, _payload(6))


@pytest.mark.parametrize("stored", [6, 7])
def test_same_or_older_blob_is_stale(stored):
    with pytest.raises(StaleFeedError) as exc_info:
        check_freshness(stored, _payload(6))

    outcome = exc_info.value.outcome
    assert outcome.success is False
    assert outcome.reason == ALREADY_UP_TO_DATE
    assert outcome.total_count == 2
    assert outcome.updated_count == 0
    assert exc_info.value.error_code == "STALE_FEED"
