"""
Service for periodically synchronizing FIDO metadata BLOBs from configured sources
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import unquote, urlparse

import aiohttp

from mds_service.core.config import Settings, settings as default_settings
from mds_service.core.exceptions import MdsFetchError
from mds_service.models.mds_models import IngestionOutcome, MdsSourceConfig
from mds_service.services.metadata_ingestion_service import MetadataIngestionService

logger = logging.getLogger(__name__)


class MdsSyncService:
    """
    Fetches metadata BLOBs from trusted sources like the FIDO Alliance MDS
    and hands them to the ingestion service.
    """

    def __init__(
        self,
        ingestion_service: MetadataIngestionService,
        config: Settings | None = None,
    ) -> None:
        """
        Initialize the sync service

        Args:
            ingestion_service: The ingestion service that stores the BLOB contents
            config: Settings holding the sources, the global settings if omitted
        """
        self.ingestion_service = ingestion_service
        self.config = config or default_settings
        self.sync_interval = self.config.SYNC_INTERVAL_HOURS * 3600  # Convert to seconds
        self.last_sync: dict[str, datetime] = {}
        self.last_outcomes: dict[str, IngestionOutcome] = {}
        self.running = False

    async def start_sync_scheduler(self) -> None:
        """
        Start the synchronization scheduler
        """
        if self.running:
            logger.warning("Sync scheduler is already running")
            return

        self.running = True
        logger.info("Starting MDS sync scheduler (interval: %ss)", self.sync_interval)

        try:
            while self.running:
                await self.sync_all_sources()
                await asyncio.sleep(self.sync_interval)
        except asyncio.CancelledError:
            logger.info("MDS sync scheduler was cancelled")
            self.running = False
            raise
        except Exception:
            logger.exception("Error in MDS sync scheduler")
            self.running = False
            raise

    def stop(self) -> None:
        self.running = False

    async def sync_all_sources(self) -> dict[str, IngestionOutcome]:
        """
        Synchronize with all enabled sources.

        A source that fails to fetch or ingest is logged and skipped; the
        others still run.
        """
        sources = self.config.enabled_sources()
        if not sources:
            logger.warning("No MDS sources configured for synchronization")
            return {}

        outcomes: dict[str, IngestionOutcome] = {}
        for source in sources:
            try:
                logger.info("Synchronizing with source: %s", source.name)
                outcomes[source.name] = await self.sync_source(source)
            except MdsFetchError as e:
                logger.error("Failed to sync with source %s: %s", source.name, e.message)
            except Exception:
                logger.exception("Failed to sync with source %s", source.name)
        return outcomes

    async def sync_source(self, source: MdsSourceConfig) -> IngestionOutcome:
        """
        Fetch and ingest the BLOB of one source

        Args:
            source: The source to sync with

        Returns:
            The ingestion outcome

        Raises:
            MdsFetchError: If the BLOB could not be retrieved
        """
        token = await self.fetch_token(source)
        outcome = await self.ingestion_service.ingest(source.url, token, source)

        self.last_outcomes[source.name] = outcome
        if outcome.success:
            self.last_sync[source.name] = datetime.now(timezone.utc)
        return outcome

    async def fetch_token(self, source: MdsSourceConfig) -> str:
        """
        Retrieve the raw BLOB text of a source.

        ``file://`` URLs are read from disk (for testing or offline updates),
        anything else is downloaded over HTTP.
        """
        if not source.url:
            msg = f"No URL configured for MDS source {source.name}"
            raise MdsFetchError(msg, "NO_URL")

        parsed = urlparse(source.url)
        if parsed.scheme == "file":
            return self._read_file(Path(unquote(parsed.path)))
        return await self._download(source.url)

    async def _download(self, url: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.config.FETCH_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        msg = f"Failed to retrieve metadata BLOB from {url}: {response.status}"
                        raise MdsFetchError(msg, "HTTP_STATUS")
                    body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f"Error downloading metadata BLOB from {url}: {e}"
            raise MdsFetchError(msg, "HTTP_ERROR") from e
        return body.strip()

    @staticmethod
    def _read_file(path: Path) -> str:
        if not path.exists():
            msg = f"Metadata BLOB file not found: {path}"
            raise MdsFetchError(msg, "FILE_NOT_FOUND")
        try:
            return path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Error reading metadata BLOB file {path}: {e}"
            raise MdsFetchError(msg, "FILE_ERROR") from e
