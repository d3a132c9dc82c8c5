"""Tests for the GitHub release client (releasewatch/services/release_client.py).

Covers:
- Release entry parsing
- Listing with a mocked transport
- Error wrapping and retries
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from releasewatch.exceptions import UpstreamUnavailableError
from releasewatch.services.release_client import GitHubReleaseClient, parse_release


@pytest.fixture
def no_sleep():
    """Skip real backoff delays."""
    with patch("releasewatch.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock:
        yield mock


def make_client(handler) -> GitHubReleaseClient:
    return GitHubReleaseClient(token="test-token", transport=httpx.MockTransport(handler))


class TestParseRelease:
    """Test suite for parse_release()."""

    def test_parses_github_entry(self):
        """Test tag, date and flags are read."""
        release = parse_release(
            {
                "tag_name": "v3.3.1",
                "published_at": "2024-05-01T10:00:00Z",
                "draft": False,
                "prerelease": True,
            }
        )
        assert release.tag == "v3.3.1"
        assert release.published_at.year == 2024
        assert release.published_at.tzinfo is not None
        assert release.is_prerelease is True
        assert release.is_draft is False

    def test_falls_back_to_name(self):
        """Test the name is used when tag_name is missing."""
        release = parse_release({"name": "3.2.9", "published_at": None})
        assert release.tag == "3.2.9"
        assert release.published_at is None

    def test_rejects_unusable_entries(self):
        """Test non-objects and entries without a tag."""
        assert parse_release("v1.0.0") is None
        assert parse_release({"published_at": "2024-05-01T10:00:00Z"}) is None

    def test_invalid_timestamp(self):
        """Test a malformed date parses as missing."""
        assert parse_release({"tag_name": "v1.0.0", "published_at": "yesterday"}).published_at is None


class TestListRecentReleases:
    """Test suite for GitHubReleaseClient.list_recent_releases()."""

    async def test_lists_releases(self):
        """Test request shape and parsed result."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json=[
                    {"tag_name": "v3.3.1", "published_at": "2024-05-01T10:00:00Z"},
                    {"tag_name": "", "published_at": "2024-04-01T10:00:00Z"},
                    {"tag_name": "v3.2.9", "published_at": "2024-03-01T10:00:00Z"},
                ],
            )

        releases = await make_client(handler).list_recent_releases("bitfocus/companion")

        assert [r.tag for r in releases] == ["v3.3.1", "v3.2.9"]
        assert seen["url"].startswith("https://api.github.com/repos/bitfocus/companion/releases")
        assert "per_page=25" in seen["url"]
        assert seen["auth"] == "Bearer test-token"

    async def test_http_error_after_retries(self, no_sleep):
        """Test server errors are retried then wrapped."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(502)

        with pytest.raises(UpstreamUnavailableError):
            await make_client(handler).list_recent_releases("bitfocus/companion")
        assert calls == 3

    async def test_unexpected_payload(self):
        """Test a non-list body is an upstream error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"message": "Not Found"})

        with pytest.raises(UpstreamUnavailableError):
            await make_client(handler).list_recent_releases("bitfocus/companion")

    async def test_invalid_json(self):
        """Test an unparsable body is an upstream error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(UpstreamUnavailableError):
            await make_client(handler).list_recent_releases("bitfocus/companion")

    async def test_invalid_project(self):
        """Test the project must be owner/repo."""
        client = make_client(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(UpstreamUnavailableError):
            await client.list_recent_releases("../../etc/passwd")
