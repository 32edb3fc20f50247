"""
Test configuration for the MDS service test suite.
"""

import pytest

from mds_service.db.database import DatabaseConfig, DatabaseManager
from tests.fixtures.fakes import InMemoryFeedLedger, InMemoryTrustStore
from tests.fixtures.feed_factory import FeedPki


def pytest_collection_modifyitems(config, items):
    """Mark tests by the directory they live in."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def pki() -> FeedPki:
    """Root, intermediate and signer shared by the whole session."""
    return FeedPki.generate()


@pytest.fixture
def source(pki):
    return pki.source()


@pytest.fixture
def ledger() -> InMemoryFeedLedger:
    return InMemoryFeedLedger()


@pytest.fixture
def trust_store() -> InMemoryTrustStore:
    return InMemoryTrustStore()


@pytest.fixture
def database(tmp_path) -> DatabaseManager:
    """File-backed SQLite database; call ``create_all`` before use."""
    return DatabaseManager(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'mds.db'}"))
