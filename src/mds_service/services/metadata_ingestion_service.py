"""
Service for ingesting a metadata BLOB into the local trust store.

Pipeline: decode -> verify signer -> freshness gate -> record version ->
classify entries -> reconcile FIDO2 entries -> aggregate counters.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from sqlalchemy.exc import IntegrityError

from mds_service.core.exceptions import MdsIngestionError, StaleFeedError
from mds_service.db.database import DatabaseManager
from mds_service.db.protocols import FeedLedger, TrustStore
from mds_service.db.repositories import MetadataRepository, MetadataTocRepository
from mds_service.models.mds_models import IngestionOutcome, MdsSourceConfig
from mds_service.services.entry_classifier import classify_entries
from mds_service.services.feed_verifier import FeedVerifier
from mds_service.services.freshness import ALREADY_UP_TO_DATE, check_freshness
from mds_service.services.reconciliation import Reconciler
from mds_service.services.result_aggregator import OutcomeAggregator
from mds_service.utils.blob_decoder import decode_feed_token

logger = logging.getLogger(__name__)


class MetadataIngestionService:
    """Runs ingestions, one at a time per feed source."""

    def __init__(
        self,
        database: DatabaseManager,
        verifier: FeedVerifier | None = None,
        reconciler: Reconciler | None = None,
    ) -> None:
        """
        Initialize the ingestion service

        Args:
            database: Database holding the ledger and the cached metadata
            verifier: Signer verifier, a default instance if omitted
            reconciler: Trust store reconciler, a default instance if omitted
        """
        self.database = database
        self.verifier = verifier or FeedVerifier()
        self.reconciler = reconciler or Reconciler()
        self._source_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def ingest(self, url: str | None, token: str, source: MdsSourceConfig) -> IngestionOutcome:
        """
        Ingest a metadata BLOB for a source.

        The whole run holds the source's lock and a single transaction, so a
        failing gate leaves nothing behind and two runs for the same source
        never both pass the freshness gate.

        Args:
            url: Where the BLOB was fetched from, None when pushed directly
            token: The compact JWS
            source: Trust configuration of the feed source

        Returns:
            The outcome; failures are reported with ``success=False`` and a reason
        """
        async with self._source_locks[source.name]:
            try:
                async with self.database.session_scope() as session:
                    outcome = await self.process(
                        url,
                        token,
                        source,
                        ledger=MetadataTocRepository(session),
                        trust_store=MetadataRepository(session),
                    )
            except MdsIngestionError as e:
                logger.warning(
                    "Metadata ingestion for %s ended early [%s]: %s",
                    source.name,
                    e.error_code,
                    e.message,
                    extra={"mds_source": source.name},
                )
                return e.outcome

        logger.info(
            "Finish handling metadata BLOB for %s: total=%d updated=%d uaf=%d u2f=%d fido2=%d",
            source.name,
            outcome.total_count,
            outcome.updated_count,
            outcome.legacy_count,
            outcome.second_gen_count,
            outcome.modern_count,
            extra={"mds_source": source.name},
        )
        return outcome

    async def process(
        self,
        url: str | None,
        token: str,
        source: MdsSourceConfig,
        ledger: FeedLedger,
        trust_store: TrustStore,
    ) -> IngestionOutcome:
        """
        Run the pipeline against the given collaborators.

        Raises:
            MdsIngestionError: If decoding, verification or the freshness gate fails
        """
        feed = decode_feed_token(token)
        self.verifier.verify(feed, url, source)

        latest_no = await ledger.find_latest_sequence(source.name)
        check_freshness(latest_no, feed.payload)

        payload = feed.payload
        try:
            await ledger.append(
                source.name,
                payload.no,
                payload.legal_header,
                payload.next_update,
                feed.encoded_payload,
            )
        except IntegrityError as e:
            # Another process recorded this version between our read and write
            raise StaleFeedError(
                f"{ALREADY_UP_TO_DATE}: no={payload.no} recorded concurrently",
                IngestionOutcome.failure(ALREADY_UP_TO_DATE, feed.entry_count),
            ) from e

        logger.info(
            "MDS registered metadata count: %d",
            feed.entry_count,
            extra={"mds_source": source.name},
        )

        decisions = classify_entries(payload.entries)
        aggregator = OutcomeAggregator(total_count=feed.entry_count)
        aggregator.record_decisions(decisions)
        aggregator.record_updates(await self.reconciler.apply(decisions, trust_store))
        return aggregator.build()
