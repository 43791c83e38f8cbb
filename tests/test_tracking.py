"""Tests for the global impact ticker endpoints.

Covers:
- POST /api/track estimate, explicit overrides, accumulation
- Prompt truncation in the audit log
- Request validation (422)
- GET /api/stats reads, including the in-memory fallback
- Health and root endpoints
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from sap_server.core.config import settings
from sap_server.main import create_app


def track(client, **body):
    return client.post("/api/track", json=body)


class TestTrack:

    def test_first_prompt(self, client):
        resp = track(client, tokens=100, userId="u1")
        assert resp.status_code == 200

        data = resp.json()
        assert data["success"] is True
        assert data["stats"]["totalPrompts"] == 1
        assert data["stats"]["totalEnergy"] == pytest.approx(0.1)
        assert data["stats"]["totalCO2"] == pytest.approx(0.05)
        assert data["stats"]["lastUpdated"] is not None

    def test_totals_accumulate(self, client):
        track(client, prompt="a", model="gpt-4", tokens=100)
        track(client, prompt="b", model="gpt-4", tokens=300)
        stats = track(client, prompt="c", model="gpt-4", tokens=0).json()["stats"]

        assert stats["totalPrompts"] == 3
        assert stats["totalEnergy"] == pytest.approx(0.4)
        assert stats["totalCO2"] == pytest.approx(0.2)

    def test_explicit_energy_and_co2(self, client):
        stats = track(client, tokens=100, energy=2.0, co2=0.0).json()["stats"]
        assert stats["totalEnergy"] == pytest.approx(2.0)
        assert stats["totalCO2"] == 0.0

    def test_source_tag_accepted(self, client):
        resp = track(client, prompt="Explain photosynthesis", tokens=5, source="button_click")
        assert resp.status_code == 200

    def test_unknown_source_rejected(self, client):
        resp = track(client, tokens=5, source="telepathy")
        assert resp.status_code == 422

    def test_negative_tokens_rejected(self, client):
        resp = track(client, tokens=-5)
        assert resp.status_code == 422
        assert resp.json() == {"error": "Invalid request"}
        assert client.get("/api/stats").json()["totalPrompts"] == 0

    def test_non_numeric_tokens_rejected(self, client):
        resp = track(client, tokens="lots")
        assert resp.status_code == 422

    def test_unexpected_error_returns_500(self, client):
        with patch(
            "sap_server.api.routes.tracking.track_prompt",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            resp = track(client, tokens=1)

        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to track prompt"}


class TestAuditLog:

    def test_prompt_truncated_but_estimate_unchanged(self, app, with_repository):
        with TestClient(app) as client:
            stats = track(client, prompt="x" * 1500, model="gpt-4", tokens=10, userId="u1").json()["stats"]

        assert stats["totalEnergy"] == pytest.approx(0.01)

        async def scenario(repository):
            return await repository.recent_prompts(user_id="u1")

        [event] = with_repository(scenario)
        assert len(event.prompt) == 1000
        assert event.tokens == 10
        assert event.energy == pytest.approx(0.01)

    def test_totals_survive_restart(self, app):
        with TestClient(app) as client:
            track(client, tokens=100)
            track(client, tokens=100)

        with TestClient(app) as client:
            stats = client.get("/api/stats").json()
            after = track(client, tokens=100).json()["stats"]

        assert stats["totalPrompts"] == 2
        assert after["totalPrompts"] == 3


class TestStats:

    def test_empty_stats(self, client):
        resp = client.get("/api/stats")
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalPrompts"] == 0
        assert data["totalEnergy"] == 0
        assert data["totalCO2"] == 0

    def test_reads_are_idempotent(self, client):
        track(client, tokens=100)
        first = client.get("/api/stats").json()
        second = client.get("/api/stats").json()
        assert first == second
        assert first["totalPrompts"] == 1


class TestDatabaseUnavailable:

    @pytest.fixture
    def broken_client(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'sap.db'}")
        with TestClient(create_app()) as test_client:
            yield test_client

    def test_tracking_still_succeeds(self, broken_client):
        resp = track(broken_client, tokens=100)
        assert resp.status_code == 200
        assert resp.json()["stats"]["totalPrompts"] == 1

    def test_stats_fall_back_to_memory(self, broken_client):
        track(broken_client, tokens=100)
        track(broken_client, tokens=100)

        resp = broken_client.get("/api/stats")
        assert resp.status_code == 200
        assert resp.json()["totalPrompts"] == 2
        assert resp.json()["totalEnergy"] == pytest.approx(0.2)


class TestServiceEndpoints:

    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["version"] == settings.APP_VERSION
        assert data["stripe"] is True

    def test_root(self, client):
        data = client.get("/").json()
        assert data["app"] == settings.APP_NAME
        assert data["docs"] == "/api/docs"
