"""Shared FastAPI dependencies for route handlers.

Each dependency returns a process-wide service. Tests replace them through
``app.dependency_overrides``.
"""

from functools import lru_cache

from releasewatch.db import AsyncSessionLocal
from releasewatch.services.installation_service import InstallationService
from releasewatch.services.release_tracker import ReleaseTracker, release_tracker
from releasewatch.services.usage_aggregator import UsageAggregator
from releasewatch.services.usage_normalizer import UsageNormalizer, usage_normalizer
from releasewatch.services.usage_store import UsageStore


def get_release_tracker() -> ReleaseTracker:
    return release_tracker


def get_usage_normalizer() -> UsageNormalizer:
    return usage_normalizer


@lru_cache(maxsize=1)
def get_usage_aggregator() -> UsageAggregator:
    """Aggregator bound to the application database."""
    return UsageAggregator(AsyncSessionLocal)


@lru_cache(maxsize=1)
def get_installation_service() -> InstallationService:
    return InstallationService(UsageStore(AsyncSessionLocal))
