"""Release tracker - keeps the current and previous stable releases.

The tracker owns a single immutable ReleaseSnapshot. A refresh builds a new
snapshot from the registry and swaps the reference in one assignment; readers
never see a half-built value and never take a lock. A failed refresh keeps
whatever snapshot was there before (or none).
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Protocol

from releasewatch.exceptions import NoStableReleasesError
from releasewatch.services.error_reporter import ErrorReporter, error_reporter
from releasewatch.services.metrics import record_release_refresh, stable_release_info
from releasewatch.services.release_client import GitHubReleaseClient, RegistryRelease
from releasewatch.utils.version import SemanticVersion, coerce_version

logger = logging.getLogger(__name__)

DEFAULT_PROJECT = os.getenv("RELEASEWATCH_REPOSITORY", "bitfocus/companion")

# Releases younger than this are ignored, so a release that gets pulled shortly
# after publishing is never advertised
PUBLISH_SAFETY_WINDOW = timedelta(hours=1)


class ReleaseRegistry(Protocol):
    async def list_recent_releases(self, project: str) -> list[RegistryRelease]: ...


@dataclass(frozen=True)
class Release:
    """A stable release observed in the registry."""

    version: SemanticVersion
    raw_tag: str
    published_at: datetime


@dataclass(frozen=True)
class ReleaseSnapshot:
    """Current and previous stable release, as of one refresh."""

    current_stable: Release
    old_stable: Release
    fetched_at: datetime


def select_stable_releases(
    releases: Iterable[RegistryRelease], now: Optional[datetime] = None
) -> ReleaseSnapshot:
    """Pick the current and old stable releases from a registry listing.

    Drafts, prereleases, releases without a publish date and releases newer
    than PUBLISH_SAFETY_WINDOW are skipped. The rest are grouped by minor
    branch keeping the highest patch of each. The highest branch is the current
    stable; the next branch down is the old stable, or the current stable again
    when only one branch exists.

    Args:
        releases: Registry listing
        now: Reference time (defaults to the current UTC time)

    Returns:
        ReleaseSnapshot

    Raises:
        NoStableReleasesError: If no release qualifies
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - PUBLISH_SAFETY_WINDOW

    by_branch: dict[tuple[int, int], Release] = {}
    for entry in releases:
        if entry.is_draft or entry.is_prerelease:
            continue
        if entry.published_at is None or entry.published_at > cutoff:
            continue

        raw_tag = entry.tag[1:] if entry.tag.startswith("v") else entry.tag
        version = coerce_version(raw_tag)
        if version is None:
            continue

        existing = by_branch.get(version.minor_branch)
        if existing is None or version > existing.version:
            by_branch[version.minor_branch] = Release(
                version=version, raw_tag=raw_tag, published_at=entry.published_at
            )

    if not by_branch:
        raise NoStableReleasesError("No suitable stable releases found")

    ordered = sorted(by_branch.values(), key=lambda r: r.version, reverse=True)
    current = ordered[0]
    old = next(
        (r for r in ordered[1:] if r.version.minor_branch != current.version.minor_branch),
        current,
    )

    return ReleaseSnapshot(current_stable=current, old_stable=old, fetched_at=now)


class ReleaseTracker:
    """Periodically refreshed view of the latest stable releases."""

    def __init__(
        self,
        client: Optional[ReleaseRegistry] = None,
        project: str = DEFAULT_PROJECT,
        reporter: ErrorReporter = error_reporter,
    ) -> None:
        self._client = client
        self.project = project
        self._reporter = reporter
        self._snapshot: Optional[ReleaseSnapshot] = None
        self._last_error: Optional[str] = None

    @property
    def client(self) -> ReleaseRegistry:
        if self._client is None:
            self._client = GitHubReleaseClient()
        return self._client

    def get_snapshot(self) -> Optional[ReleaseSnapshot]:
        """Return the latest snapshot, or None while releases are unavailable."""
        return self._snapshot

    @property
    def last_error(self) -> Optional[str]:
        """Message of the most recent failed refresh, cleared on success."""
        return self._last_error

    async def refresh(self) -> ReleaseSnapshot:
        """Fetch releases and publish a new snapshot.

        Raises:
            UpstreamUnavailableError: If the registry cannot be queried
            NoStableReleasesError: If no release qualifies
        """
        releases = await self.client.list_recent_releases(self.project)
        snapshot = select_stable_releases(releases)

        self._snapshot = snapshot
        self._last_error = None

        stable_release_info.info(
            {
                "current": str(snapshot.current_stable.version),
                "old": str(snapshot.old_stable.version),
            }
        )
        logger.info(
            f"Fetched latest releases: current={snapshot.current_stable.version} "
            f"old={snapshot.old_stable.version}"
        )
        return snapshot

    async def refresh_safely(self) -> bool:
        """Refresh, reporting failures instead of raising.

        Returns:
            True if a new snapshot was published
        """
        start = time.monotonic()
        try:
            await self.refresh()
        except Exception as e:  # noqa: BLE001 - a refresh failure must never stop the timer
            self._last_error = str(e)
            record_release_refresh(False, time.monotonic() - start)
            self._reporter.report(e, {"project": self.project}, source="release_tracker")
            return False

        record_release_refresh(True, time.monotonic() - start)
        return True


# Process-wide tracker
release_tracker = ReleaseTracker()
