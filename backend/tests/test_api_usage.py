"""Tests for Usage API (releasewatch/api/usage.py).

Covers:
- POST /companion/detailed-usage - modern shape with features
- POST /companion/usage - legacy enumerated shape
- POST /old-metrics - free-form legacy blob
- GET /health and GET /metrics
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import status
from sqlalchemy import select

from releasewatch.models import InstallationFeatures, SurfaceDailyUsage, SurfaceUserLastSeen


def detailed_body(**overrides):
    body = {
        "id": "user-1",
        "app": {"name": "companion", "version": "3.3.1", "build": "3.3.1+7001-stable-ee7c3daa"},
        "os": {"platform": "linux", "arch": "x64", "release": "6.1.0"},
        "uptime": 3600,
        "surfaces": [
            {"moduleId": "elgato-stream-deck", "id": "CL1", "description": "Stream Deck XL"},
            {"moduleId": "elgato-stream-deck", "id": "CL2", "description": "Stream Deck Mini"},
        ],
        "connections": [{"moduleId": "bmd-atem", "counts": {"3.1.0": 2}}],
    }
    body.update(overrides)
    return body


def features_body():
    return {
        "isBoundToLoopback": False,
        "hasAdminPassword": True,
        "hasPincodeLockout": False,
        "cloudEnabled": False,
        "httpsEnabled": True,
        "tcpEnabled": False,
        "tcpDeprecatedEnabled": False,
        "udpEnabled": False,
        "udpDeprecatedEnabled": False,
        "oscEnabled": True,
        "oscDeprecatedEnabled": False,
        "rossTalkEnabled": False,
        "emberPlusEnabled": False,
        "artnetEnabled": False,
        "pageCount": 5,
        "buttonCount": 64,
        "triggerCount": 1,
        "customVariableCount": 0,
        "expressionVariableCount": 0,
        "gridSize": {"minCol": 0, "maxCol": 7, "minRow": 0, "maxRow": 3},
        "connectedSatellites": 1,
    }


async def daily_counts(db, user_id):
    result = await db.execute(
        select(SurfaceDailyUsage.module_name, SurfaceDailyUsage.max_count).where(
            SurfaceDailyUsage.user_id == user_id
        )
    )
    return dict(result.all())


class TestDetailedUsage:
    """Test suite for POST /companion/detailed-usage."""

    async def test_accepts_report(self, client, db):
        """Test surfaces and connections are merged."""
        response = await client.post("/companion/detailed-usage", json=detailed_body())

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": True}
        assert await daily_counts(db, "user-1") == {"elgato-stream-deck": 2}

    async def test_stores_features(self, client, db):
        """Test the optional feature snapshot."""
        response = await client.post(
            "/companion/detailed-usage", json=detailed_body(features=features_body())
        )

        assert response.json() == {"ok": True}
        row = (await db.execute(select(InstallationFeatures))).scalar_one()
        assert row.user_id == "user-1"
        assert row.https_enabled is True
        assert row.connection_count is None
        assert row.app_build == "3.3.1+7001-stable-ee7c3daa"

    async def test_features_from_other_app_rejected(self, client):
        """Test a feature report from another app is not accepted."""
        body = detailed_body(features=features_body())
        body["app"]["name"] = "buttons"
        response = await client.post("/companion/detailed-usage", json=body)

        assert response.json() == {"ok": False}

    async def test_merge_failure_rejects(self, client, aggregator):
        """Test ok=false when a merge fails so the client resends."""
        aggregator.connections.write = AsyncMock(side_effect=RuntimeError("db down"))
        response = await client.post("/companion/detailed-usage", json=detailed_body())

        assert response.json() == {"ok": False}

    async def test_invalid_body(self, client):
        """Test request validation for the typed shape."""
        response = await client.post("/companion/detailed-usage", json={"id": "user-1"})
        assert response.status_code == 422


class TestEnumeratedUsage:
    """Test suite for POST /companion/usage."""

    async def test_surface_map(self, client, db):
        """Test serial map and plain module counts."""
        response = await client.post(
            "/companion/usage",
            json={
                "id": "user-2",
                "surfaces": {"CL1": {"type": "elgato", "description": "Streamdeck"}},
                "modules": {"bmd-atem": 2},
            },
        )

        assert response.json() == {"ok": True}
        row = (await db.execute(select(SurfaceUserLastSeen))).scalar_one()
        assert row.surface_serial == "CL1"
        assert row.surface_description == "Elgato Stream Deck"

    async def test_surface_list(self, client, db):
        """Test bare identifiers are stored as legacy surfaces."""
        response = await client.post(
            "/companion/usage", json={"id": "user-2", "surfaces": ["hash-a", "hash-b"]}
        )

        assert response.json() == {"ok": True}
        assert await daily_counts(db, "user-2") == {"legacy": 2}


class TestOldMetrics:
    """Test suite for POST /old-metrics."""

    async def test_blob(self, client, db):
        """Test loosely typed short keys."""
        response = await client.post(
            "/old-metrics",
            json={"i": "user-3", "d": ["abc"], "m": {"obs": "3"}, "r": 12},
        )

        assert response.json() == {"ok": True}
        assert await daily_counts(db, "user-3") == {"legacy": 1}

    @pytest.mark.parametrize("body", [{}, {"i": 5}, [], "text"])
    async def test_missing_identifier(self, client, body):
        """Test reports without an identifier are not accepted."""
        response = await client.post("/old-metrics", json=body)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ok": False}

    async def test_malformed_entries_still_accepted(self, client, db):
        """Test bad entries are skipped while the rest is merged."""
        response = await client.post(
            "/old-metrics",
            json={"i": "user-3", "s": {"CL1": {"type": "elgato"}, "CL2": 7}, "mv": {"obs": {"1.0": -2}}},
        )

        assert response.json() == {"ok": True}
        assert await daily_counts(db, "user-3") == {"elgato": 1}


class TestServiceEndpoints:
    """Test suite for /health and /metrics."""

    async def test_health(self, client):
        """Test health status is reported."""
        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    async def test_metrics(self, client):
        """Test Prometheus exposition includes the usage counters."""
        await client.post("/old-metrics", json={})
        response = await client.get("/metrics")

        assert response.status_code == status.HTTP_200_OK
        assert "releasewatch_usage_reports_total" in response.text
