"""Tests for Updates API (releasewatch/api/updates.py).

Covers:
- POST /updates - advisory answers and retry flag
- POST /updates - non-tracked applications
- POST /updates-old - legacy flat request shape
- Installation recording after the answer
"""

import pytest
from fastapi import status
from sqlalchemy import select

from releasewatch.models import Installation
from releasewatch.services.version_advisor import BETA_LINK, STABLE_LINK


def update_body(build: str = "3.3.1+7001-stable-ee7c3daa", name: str = "companion", user: str = "user-1"):
    return {
        "id": user,
        "app": {"name": name, "version": build.split("+")[0], "build": build},
        "os": {"platform": "linux", "arch": "x64", "release": "6.1.0"},
    }


def legacy_body(build: str = "3.3.1+7001-stable-ee7c3daa", **extra):
    body = {
        "id": "user-legacy",
        "app_name": "companion",
        "app_version": build.split("+")[0],
        "app_build": build,
        "platform": "win32",
        "arch": "x64",
        "release": "10.0.19045",
    }
    body.update(extra)
    return body


class TestUpdatesEndpoint:
    """Test suite for POST /updates."""

    async def test_retry_before_releases_known(self, client):
        """Test ok=false asks the client to retry later."""
        response = await client.post("/updates", json=update_body())

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": False, "message": ""}

    async def test_up_to_date(self, client, tracker):
        """Test the documented up-to-date scenario."""
        await tracker.refresh()
        response = await client.post("/updates", json=update_body())

        assert response.json() == {"ok": True, "message": ""}

    async def test_new_stable_available(self, client, tracker):
        """Test an older stable build gets the update link."""
        await tracker.refresh()
        response = await client.post("/updates", json=update_body("3.2.9+6000-stable-abcdef0"))

        data = response.json()
        assert data["ok"] is True
        assert data["message"] == "A new stable version (v3.3.1) is available."
        assert data["link"] == STABLE_LINK

    async def test_beta(self, client, tracker):
        """Test the beta reminder."""
        await tracker.refresh()
        response = await client.post("/updates", json=update_body("3.3.0+6990-beta-1234567ab"))

        assert response.json()["link"] == BETA_LINK

    async def test_unparsable_build(self, client, tracker):
        """Test garbage builds degrade to a message, not an error."""
        await tracker.refresh()
        response = await client.post("/updates", json=update_body("not-a-version"))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": True, "message": "unable to determine version"}

    async def test_other_application(self, client, tracker):
        """Test applications other than the tracked one get an empty answer."""
        response = await client.post("/updates", json=update_body(name="buttons"))

        assert response.json() == {"ok": True, "message": ""}

    async def test_invalid_body(self, client):
        """Test request validation."""
        response = await client.post("/updates", json={"id": "user-1"})
        assert response.status_code == 422

    async def test_records_installation(self, client, db):
        """Test the installation is upserted after answering."""
        await client.post("/updates", json=update_body("3.2.9+6000-stable-abcdef0"))
        await client.post("/updates", json=update_body())

        rows = (await db.execute(select(Installation))).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id == "user-1"
        assert rows[0].app_build == "3.3.1+7001-stable-ee7c3daa"
        assert rows[0].os_platform == "linux"


class TestLegacyUpdatesEndpoint:
    """Test suite for POST /updates-old."""

    async def test_flat_shape(self, client, tracker):
        """Test the legacy answer has no ok flag."""
        await tracker.refresh()
        response = await client.post(
            "/updates-old", json=legacy_body("3.3.0+6990-stable-abcdef0", tz="UTC", cpus=[1, 2], type="Windows_NT")
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "message": "A new stable version (v3.3.1) is available.",
            "link": STABLE_LINK,
        }

    async def test_ancient(self, client):
        """Test ancient builds are flagged without releases."""
        response = await client.post("/updates-old", json=legacy_body("2.4.0+500-stable-abc1234"))

        data = response.json()
        assert "very old version" in data["message"]
        assert data["link"].endswith("?inapp_ancient")

    async def test_records_installation(self, client, db):
        """Test legacy checks also record the installation."""
        await client.post("/updates-old", json=legacy_body())

        row = (await db.execute(select(Installation))).scalar_one()
        assert row.user_id == "user-legacy"
        assert row.os_platform == "win32"
