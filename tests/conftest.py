"""
pg-upsert Test Configuration

Shared fixtures for Tier 1 (unit, mocked connections) and Tier 2
(integration, real PostgreSQL) tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src and the project root (for ``tests.fixtures``) to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from pg_upsert import InMemoryTelemetrySink, UpsertSettings
from pg_upsert.utils.logging_utils import restore_pg_upsert_logging

from tests.fixtures.fake_pg import FakeUpsertConnection, make_factory
from tests.fixtures.invocations import TEST_PG_STRING


@pytest.fixture
def telemetry_sink():
    return InMemoryTelemetrySink()


@pytest.fixture
def fake_connection():
    return FakeUpsertConnection()


@pytest.fixture
def settings(telemetry_sink, fake_connection):
    """Settings wired to the in-memory sink and a fake connection."""
    return UpsertSettings(
        telemetry_sink=telemetry_sink,
        connection_factory=make_factory(fake_connection),
    )


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    restore_pg_upsert_logging()


@pytest.fixture(scope="session")
def test_database_url():
    return os.getenv("TEST_DATABASE_URL", TEST_PG_STRING)
