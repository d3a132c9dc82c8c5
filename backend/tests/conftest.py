"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set DATABASE_URL for tests BEFORE importing releasewatch.db
# This prevents the module from trying to create /data directory
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from releasewatch.db import Base
from releasewatch.models import *  # noqa: F401,F403 - register every table
from releasewatch.services.error_reporter import ErrorReporter
from releasewatch.services.release_client import RegistryRelease
from releasewatch.services.release_tracker import ReleaseTracker
from releasewatch.services.usage_aggregator import UsageAggregator
from releasewatch.services.usage_normalizer import UsageNormalizer
from releasewatch.services.usage_store import UsageStore


@pytest.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    # Use in-memory SQLite for testing
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        pool_reset_on_return=None,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session for reading back results."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def reporter():
    """Error reporter whose report() calls can be inspected."""
    mock = MagicMock(spec=ErrorReporter)
    return mock


@pytest.fixture
def store(session_factory) -> UsageStore:
    return UsageStore(session_factory)


@pytest.fixture
def aggregator(session_factory, reporter) -> UsageAggregator:
    """Usage aggregator with its own known-module cache."""
    return UsageAggregator(session_factory, reporter=reporter)


@pytest.fixture
def normalizer(reporter) -> UsageNormalizer:
    return UsageNormalizer(reporter=reporter)


def make_release(tag: str, age: timedelta = timedelta(days=7), draft: bool = False,
                 prerelease: bool = False) -> RegistryRelease:
    """Build a registry release published ``age`` ago."""
    return RegistryRelease(
        tag=tag,
        published_at=datetime.now(timezone.utc) - age,
        is_draft=draft,
        is_prerelease=prerelease,
    )


class FakeRegistry:
    """In-memory release registry."""

    def __init__(self, releases=None, error: Exception | None = None):
        self.releases = list(releases or [])
        self.error = error
        self.calls = 0

    async def list_recent_releases(self, project: str):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.releases)


@pytest.fixture
def release_factory():
    """Factory for registry releases (see make_release)."""
    return make_release


@pytest.fixture
def registry_factory():
    """Factory for in-memory registries."""
    return FakeRegistry


@pytest.fixture
def fake_registry():
    """Registry with stable 3.2.9 and 3.3.1 plus noise."""
    return FakeRegistry(
        [
            make_release("v3.3.1"),
            make_release("v3.3.0"),
            make_release("v3.4.0-beta.1", prerelease=True),
            make_release("v3.2.9"),
            make_release("v3.2.8"),
        ]
    )


@pytest.fixture
def tracker(fake_registry, reporter) -> ReleaseTracker:
    return ReleaseTracker(client=fake_registry, project="bitfocus/companion", reporter=reporter)


@pytest.fixture
async def app():
    """FastAPI app for testing."""
    from releasewatch.main import app as application
    return application


@pytest.fixture
async def client(app, tracker, aggregator, normalizer, store):
    """Create async test client bound to the test database and tracker."""
    from httpx import ASGITransport, AsyncClient

    from releasewatch.dependencies import (
        get_installation_service,
        get_release_tracker,
        get_usage_aggregator,
        get_usage_normalizer,
    )
    from releasewatch.services.installation_service import InstallationService

    installations = InstallationService(store)

    app.dependency_overrides[get_release_tracker] = lambda: tracker
    app.dependency_overrides[get_usage_aggregator] = lambda: aggregator
    app.dependency_overrides[get_usage_normalizer] = lambda: normalizer
    app.dependency_overrides[get_installation_service] = lambda: installations

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
