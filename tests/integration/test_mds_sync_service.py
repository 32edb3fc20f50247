from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp import test_utils

from mds_service.core.config import Settings
from mds_service.core.exceptions import MdsFetchError
from mds_service.services.mds_sync_service import MdsSyncService
from mds_service.services.metadata_ingestion_service import MetadataIngestionService
from tests.fixtures.feed_factory import blob_payload, fido2_entry


@pytest.fixture
def blob_file(tmp_path, pki):
    path = tmp_path / "blob.jwt"
    path.write_text(pki.sign(blob_payload(11, [fido2_entry("aaguid-file")])) + "\n")
    return path


def _settings(*sources) -> Settings:
    return Settings(MDS_SOURCES=list(sources), FETCH_TIMEOUT_SECONDS=5)


@pytest.mark.asyncio
async def test_sync_source_reads_file_url(database, pki, blob_file):
    await database.create_all()
    source = pki.source(name="offline", url=blob_file.as_uri())
    sync = MdsSyncService(MetadataIngestionService(database), _settings(source))
    try:
        outcome = await sync.sync_source(source)

        assert outcome.success is True
        assert outcome.updated_count == 1
        assert sync.last_outcomes["offline"] == outcome
        assert "offline" in sync.last_sync
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_sync_source_downloads_over_http(database, pki):
    token = pki.sign(blob_payload(3, [fido2_entry("aaguid-http")]))

    async def handler(request):
        return web.Response(text=token)

    app = web.Application()
    app.router.add_get("/blob.jwt", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    await database.create_all()
    try:
        source = pki.source(name="remote", url=str(server.make_url("/blob.jwt")))
        sync = MdsSyncService(MetadataIngestionService(database), _settings(source))

        outcome = await sync.sync_source(source)

        assert outcome.success is True
        assert outcome.total_count == 1

        # Same BLOB again is stale; the outcome is recorded but no sync time
        sync.last_sync.clear()
        outcome = await sync.sync_source(source)
        assert outcome.success is False
        assert sync.last_outcomes["remote"].success is False
        assert "remote" not in sync.last_sync
    finally:
        await server.close()
        await database.dispose()


@pytest.mark.asyncio
async def test_http_error_status_raises_fetch_error(database, pki):
    app = web.Application()
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        source = pki.source(name="remote", url=str(server.make_url("/missing.jwt")))
        sync = MdsSyncService(MetadataIngestionService(database), _settings(source))

        with pytest.raises(MdsFetchError) as exc_info:
            await sync.sync_source(source)

        assert exc_info.value.error_code == "HTTP_STATUS"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_sync_all_sources_continues_after_fetch_failure(database, pki, blob_file, tmp_path):
    await database.create_all()
    missing = pki.source(name="missing", url=(tmp_path / "nope.jwt").as_uri())
    offline = pki.source(name="offline", url=blob_file.as_uri())
    disabled = pki.source(name="disabled", url=blob_file.as_uri(), enabled=False)
    sync = MdsSyncService(MetadataIngestionService(database), _settings(missing, offline, disabled))
    try:
        outcomes = await sync.sync_all_sources()

        assert set(outcomes) == {"offline"}
        assert outcomes["offline"].success is True
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_source_without_url_cannot_be_fetched(database, pki):
    source = pki.source(name="push-only", url=None)
    sync = MdsSyncService(MetadataIngestionService(database), _settings(source))

    with pytest.raises(MdsFetchError) as exc_info:
        await sync.fetch_token(source)

    assert exc_info.value.error_code == "NO_URL"


@pytest.mark.asyncio
async def test_sync_all_sources_without_configuration(database):
    sync = MdsSyncService(MetadataIngestionService(database), _settings())

    assert await sync.sync_all_sources() == {}


@pytest.mark.asyncio
async def test_sync_all_sources_continues_after_ingestion_error(database, pki, blob_file):
    await database.create_all()
    ingestion = MetadataIngestionService(database)
    real_ingest = ingestion.ingest

    async def ingest(url, token, source):
        if source.name == "broken":
            raise RuntimeError("database is locked")
        return await real_ingest(url, token, source)

    ingestion.ingest = AsyncMock(side_effect=ingest)
    broken = pki.source(name="broken", url=blob_file.as_uri())
    good = pki.source(name="good", url=blob_file.as_uri())
    sync = MdsSyncService(ingestion, _settings(broken, good))
    try:
        outcomes = await sync.sync_all_sources()

        assert set(outcomes) == {"good"}
        assert outcomes["good"].success is True
        assert "broken" not in sync.last_outcomes
        assert ingestion.ingest.await_count == 2
    finally:
        await database.dispose()
