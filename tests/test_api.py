"""
Tests for the HTTP control surface (FastAPI TestClient, in-memory store).
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import risky_area, safe_area
from floodwatch.core.config import settings
from floodwatch.main import create_app
from floodwatch.storage.area_store import InMemoryAreaStore


@pytest.fixture
def client():
    store = InMemoryAreaStore([risky_area("r1"), safe_area("s1")])
    with TestClient(create_app(store=store)) as c:
        yield c


FLOODED_RIVERSIDE = {
    "id": "riverside",
    "geometry": {"type": "Point", "coordinates": [80.27, 13.08]},
    "elevation_m": 2,
    "slope": "flat",
    "drainage": "none",
    "water_body": "river",
    "water_distance_m": 50,
    "ground_condition": "already flooded",
    "weather": {"rainfall": 85, "forecastRainfall": 200},
}


class TestMonitorRoutes:
    def test_status_starts_idle(self, client):
        response = client.get("/api/v1/monitor/status")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "idle"
        assert body["cycle_count"] == 0
        assert body["last_cycle"] is None

    def test_scenarios_listed_in_order(self, client):
        body = client.get("/api/v1/monitor/scenarios").json()
        assert [s["name"] for s in body] == [
            "Heavy Rain Storm", "Severe Typhoon", "Super Typhoon",
            "Moderate Rain", "Clear Weather",
        ]
        assert body[0]["selected"] is True

    def test_advance_scenario(self, client):
        body = client.post("/api/v1/monitor/scenario/next").json()
        assert body["name"] == "Severe Typhoon"
        status = client.get("/api/v1/monitor/status").json()
        assert status["scenario"] == "Severe Typhoon"
        assert status["cycle_count"] == 0

    def test_run_cycle_and_alerts(self, client):
        client.post("/api/v1/monitor/scenario/next")
        client.post("/api/v1/monitor/scenario/next")  # Super Typhoon

        report = client.post("/api/v1/monitor/cycle").json()
        assert report["areas_total"] == 2
        assert report["changed"] == 2
        assert report["scenario"] == "Super Typhoon"

        alerts = client.get("/api/v1/monitor/alerts").json()
        assert alerts["headline"] == "Severe Flood Risk Alert"
        assert alerts["severe"] == 1
        assert [a["id"] for a in alerts["areas"]] == ["r1"]

    def test_no_alerts_in_clear_weather(self, client):
        alerts = client.get("/api/v1/monitor/alerts").json()
        assert alerts["headline"] is None
        assert alerts["total"] == 0

    def test_start_and_stop_demo(self, client):
        response = client.post("/api/v1/monitor/start", params={"mode": "demo"})
        assert response.status_code == 200
        assert response.json()["started"] is True
        assert response.json()["status"]["state"] == "monitoring"

        again = client.post("/api/v1/monitor/start", params={"mode": "demo"}).json()
        assert again["started"] is False

        stopped = client.post("/api/v1/monitor/stop").json()
        assert stopped["state"] == "idle"

    def test_start_live_without_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "OPENWEATHER_API_KEY", None)
        response = client.post("/api/v1/monitor/start", params={"mode": "live"})
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "CONFIGURATION_ERROR"
        assert client.get("/api/v1/monitor/status").json()["state"] == "idle"

    def test_unknown_mode_rejected(self, client):
        response = client.post("/api/v1/monitor/start", params={"mode": "turbo"})
        assert response.status_code == 422


class TestRiskRoutes:
    def test_evaluate_already_flooded(self, client):
        response = client.post("/api/v1/risk/evaluate", json=FLOODED_RIVERSIDE)
        assert response.status_code == 200
        body = response.json()
        assert body["area_id"] == "riverside"
        assert body["level"] == "Severe"
        assert body["override"] == "already_flooded"
        assert 0.0 <= body["score"] <= 1.0

    def test_evaluate_dry_hillside(self, client):
        response = client.post("/api/v1/risk/evaluate", json={
            "geometry": {"type": "Polygon", "coordinates": "[[[80.1, 13.1], [80.2, 13.1], [80.1, 13.1]]]"},
            "elevation_m": 50,
            "slope": "steep",
            "drainage": "engineered",
        })
        assert response.status_code == 200
        assert response.json()["level"] == "Very Low"

    def test_invalid_geometry(self, client):
        payload = {**FLOODED_RIVERSIDE, "geometry": {"type": "Point", "coordinates": [500, 13]}}
        response = client.post("/api/v1/risk/evaluate", json=payload)
        assert response.status_code == 422
        assert response.json()["error"]["details"]["field"] == "geometry"

    @pytest.mark.parametrize("field, body", [
        ("elevation_m", '"elevation_m": NaN'),
        ("rainfall", '"weather": {"rainfall": Infinity}'),
        ("max_depth_m", '"flood_history": {"max_depth_m": NaN}'),
    ])
    def test_non_finite_numbers_rejected(self, client, field, body):
        payload = '{"geometry": {"type": "Point", "coordinates": [80.27, 13.08]}, %s}' % body
        response = client.post(
            "/api/v1/risk/evaluate",
            content=payload,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"][-1] == field

    def test_negative_population_rejected(self, client):
        payload = {**FLOODED_RIVERSIDE, "population": -3}
        assert client.post("/api/v1/risk/evaluate", json=payload).status_code == 422


class TestRoot:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == settings.APP_NAME

    def test_request_id_header(self, client):
        response = client.get("/health/live")
        assert response.headers["X-Request-ID"]
        assert response.json() == {"status": "alive"}
