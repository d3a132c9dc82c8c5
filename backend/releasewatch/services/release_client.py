"""Release registry client (GitHub releases API)."""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from releasewatch.exceptions import UpstreamUnavailableError
from releasewatch.utils.retry import async_retry
from releasewatch.utils.security import mask_sensitive, sanitize_log_message

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Enough to cover the latest couple of minor branches
DEFAULT_PAGE_SIZE = 25

_PROJECT_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")


@dataclass(frozen=True)
class RegistryRelease:
    """One release as listed by the registry."""

    tag: str
    published_at: Optional[datetime]
    is_draft: bool
    is_prerelease: bool


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when absent or invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_release(entry: Any) -> Optional[RegistryRelease]:
    """Convert one GitHub release object, or None if it is unusable.

    The tag is taken from ``tag_name``, falling back to ``name``.
    """
    if not isinstance(entry, dict):
        return None

    tag = entry.get("tag_name") or entry.get("name") or ""
    if not isinstance(tag, str) or not tag:
        return None

    return RegistryRelease(
        tag=tag,
        published_at=_parse_timestamp(entry.get("published_at")),
        is_draft=bool(entry.get("draft")),
        is_prerelease=bool(entry.get("prerelease")),
    )


class GitHubReleaseClient:
    """Lists recent releases of a GitHub repository."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = GITHUB_API_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: GitHub token; anonymous requests are heavily rate limited
            base_url: API base URL
            page_size: Number of releases requested per refresh
            transport: Optional httpx transport (used by tests)
        """
        self.token = token if token is not None else os.getenv("GITHUB_TOKEN")
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._transport = transport

        if self.token:
            logger.info(f"GitHub release client using token {mask_sensitive(self.token)}")
        else:
            logger.warning("GITHUB_TOKEN not set, release checks use anonymous API quota")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "releasewatch",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @async_retry(
        max_attempts=3,
        backoff_base=1.0,
        backoff_max=10.0,
        exceptions=(httpx.HTTPError,),
    )
    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            timeout=30.0, headers=self._headers(), transport=self._transport
        ) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    async def list_recent_releases(self, project: str) -> List[RegistryRelease]:
        """List the most recent releases of a project.

        Args:
            project: Repository in "owner/repo" form

        Returns:
            Releases in registry order (newest first); unusable entries are dropped

        Raises:
            UpstreamUnavailableError: If the registry cannot be queried
        """
        if not _PROJECT_PATTERN.match(project):
            raise UpstreamUnavailableError(
                f"Invalid release project: {sanitize_log_message(project)}"
            )

        url = f"{self.base_url}/repos/{project}/releases"
        try:
            payload = await self._get_json(url, {"per_page": self.page_size})
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Failed to list releases for {project}: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailableError(f"Invalid release listing for {project}: {e}") from e

        if not isinstance(payload, list):
            raise UpstreamUnavailableError(f"Unexpected release listing for {project}")

        releases = []
        for entry in payload:
            release = parse_release(entry)
            if release is not None:
                releases.append(release)

        logger.debug(f"Fetched {len(releases)} releases for {project}")
        return releases
