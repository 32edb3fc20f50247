"""Rejects metadata BLOBs that are not newer than the last accepted one."""

from __future__ import annotations

import logging

from mds_service.core.exceptions import StaleFeedError
from mds_service.models.mds_models import FeedPayload, IngestionOutcome

logger = logging.getLogger(__name__)

ALREADY_UP_TO_DATE = "already up to date"


def check_freshness(latest_no: int | None, payload: FeedPayload) -> None:
    """
    Gate a BLOB on its sequence number.

    Args:
        latest_no: Highest accepted sequence number for the source, None if none yet
        payload: The incoming BLOB payload

    Raises:
        StaleFeedError: If a previous BLOB with the same or a higher number was accepted
    """
    if latest_no is not None and latest_no >= payload.no:
        logger.info(
            "Local cached data is already up to date (stored no=%s, incoming no=%s)",
            latest_no,
            payload.no,
        )
        raise StaleFeedError(
            f"{ALREADY_UP_TO_DATE}: stored no={latest_no}, incoming no={payload.no}",
            IngestionOutcome.failure(ALREADY_UP_TO_DATE, len(payload.entries)),
        )
