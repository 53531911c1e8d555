"""Functional tests for the dashboard API.

The app runs in-process through FastAPI's ``TestClient`` with the seeded mock
provider, so no GitHub credentials or running server are required.

Run with: pytest tests/test_dashboard_server.py
"""

import datetime as dt
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from api.dashboard_server import create_app
from conftest import NOW
from services.copilot_api import ProviderError
from services.mock_data import MockCopilotProvider

TODAY = dt.date(2024, 6, 25)


def _mock_factory() -> MockCopilotProvider:
    return MockCopilotProvider(seed=7, today=TODAY)


class FailingProvider:
    async def fetch_metrics(self):
        raise ProviderError("Copilot API returned 401 for /metrics: Bad credentials")

    async def fetch_seat_roster(self):
        raise ProviderError("Copilot API returned 401 for /billing/seats: Bad credentials")


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app(provider_factory=_mock_factory, clock=lambda: NOW)
    with TestClient(app) as test_client:
        yield test_client


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "dashboard": "ready", "error": None, "metrics": "ready"}


def test_cards_endpoint(client: TestClient) -> None:
    data = client.get("/dashboard/cards").json()
    assert data["total_seats"] == 200
    assert 0 < data["engaged_users"] <= data["active_users"] <= 200
    assert data["adoption"]["ratio"] == (data["active_users"] * 100 + 100) // 200
    assert data["adoption"]["status"] in {"Strong", "Moderate", "Underutilized"}


def test_trend_endpoint(client: TestClient) -> None:
    points = client.get("/dashboard/trend").json()
    assert len(points) == 14
    assert points[-1]["date"] == "2024-06-24"
    assert points[-1]["label"] == "Jun 24"
    assert set(points[0]["feature_counts"]) == {
        "code_completions",
        "ide_chat",
        "pull_request_summaries",
        "dotcom_chat",
    }

    assert len(client.get("/dashboard/trend", params={"limit": 3}).json()) == 3
    assert len(client.get("/dashboard/trend", params={"limit": 90}).json()) == 28
    assert client.get("/dashboard/trend", params={"limit": 0}).status_code == 422


def test_features_endpoint(client: TestClient) -> None:
    features = client.get("/dashboard/features").json()
    assert [feature["display_name"] for feature in features] == [
        "Code Completions",
        "IDE Chat",
        "PR Summaries",
        "GitHub Chat",
    ]
    completions = features[0]
    breakdown = completions["editor_breakdown"]
    assert sum(editor["total_engaged_users"] for editor in breakdown) == completions["engaged_users"]


def test_distributions_endpoint(client: TestClient) -> None:
    data = client.get("/dashboard/distributions").json()
    assert set(data) == {"by_team", "by_editor", "by_activity"}
    assigned = sum(entry["count"] for entry in data["by_team"])
    assert assigned == 180
    assert sum(entry["count"] for entry in data["by_editor"]) == assigned
    assert sum(entry["count"] for entry in data["by_activity"]) == assigned
    order = ["Today", "This Week", "Older", "Never"]
    labels = [entry["label"] for entry in data["by_activity"]]
    assert labels == [label for label in order if label in labels]


def test_roster_endpoint(client: TestClient) -> None:
    rows = client.get("/dashboard/roster").json()
    assert len(rows) == 180
    first = rows[0]
    assert first["user_id"] == 1000
    assert set(first) == {"user_id", "login", "avatar_url", "recency", "editor", "team"}
    assert first["recency"]["tag"] in {"Today", "Recent", "Stale", "Never"}


def test_drilldown_starts_closed(client: TestClient) -> None:
    data = client.get("/drilldown").json()
    assert data == {"view": "closed", "params": {}, "detail": None, "definitions": []}


def test_drilldown_card_views(client: TestClient) -> None:
    seats = client.post("/drilldown/cards/seats").json()
    assert seats["view"] == "seats"
    assert seats["detail"]["allocation"] == {"total": 200, "assigned": 180, "available": 20}

    active = client.post("/drilldown/cards/active_users").json()
    assert active["view"] == "active_users"
    assert active["detail"]["peak"] >= active["detail"]["current"]
    assert active["detail"]["average_window"] == 7

    adoption = client.post("/drilldown/cards/adoption").json()
    assert [band["status"] for band in adoption["detail"]["bands"]] == [
        "Strong",
        "Moderate",
        "Underutilized",
    ]
    assert sum(band["current"] for band in adoption["detail"]["bands"]) == 1
    assert len(adoption["definitions"]) == 1
    assert adoption["definitions"][0].startswith("Adoption rate (percent, from derived):")

    assert client.get("/drilldown").json()["view"] == "adoption"


def test_drilldown_unknown_card(client: TestClient) -> None:
    response = client.post("/drilldown/cards/billing")
    assert response.status_code == 404
    assert "Unknown card" in response.json()["detail"]


def test_drilldown_trend_point(client: TestClient) -> None:
    data = client.post("/drilldown/trend/2024-06-20").json()
    assert data["view"] == "trend"
    assert data["params"] == {"date": "2024-06-20"}
    assert data["detail"]["found"] is True
    assert len(data["detail"]["features"]) == 4

    missing = client.post("/drilldown/trend/2099-01-01").json()
    assert missing["detail"]["found"] is False
    assert missing["detail"]["features"] == []

    assert client.post("/drilldown/trend/not-a-date").status_code == 422


def test_drilldown_feature_and_user(client: TestClient) -> None:
    feature = client.post("/drilldown/features/ide_chat").json()
    assert feature["view"] == "feature"
    assert feature["detail"]["found"] is True
    assert feature["detail"]["feature"]["display_name"] == "IDE Chat"
    assert len(feature["detail"]["trend"]) == 14

    user = client.post("/drilldown/users/1000").json()
    assert user["view"] == "user"
    assert user["params"] == {"user_id": 1000}
    assert user["detail"]["found"] is True
    assert user["detail"]["row"]["user_id"] == 1000

    unknown = client.post("/drilldown/users/5").json()
    assert unknown["detail"]["found"] is False


def test_drilldown_dismiss(client: TestClient) -> None:
    client.post("/drilldown/cards/seats")
    data = client.delete("/drilldown").json()
    assert data == {"view": "closed", "params": {}, "detail": None, "definitions": []}


def test_reload_endpoint(client: TestClient) -> None:
    client.post("/drilldown/cards/seats")
    response = client.post("/reload")
    assert response.status_code == 200
    assert response.json() == {"dashboard": "ready", "error": None}
    assert client.get("/drilldown").json()["view"] == "closed"


def test_metrics_catalogue(client: TestClient) -> None:
    data = client.get("/metrics").json()
    assert "adoption_rate" in data
    assert data["adoption_rate"].startswith("Adoption rate (")

    active = client.get("/metrics", params={"view": "active_users"}).json()
    assert list(active) == ["active_users", "average_active_users", "peak_active_users"]


def test_provider_failure_returns_503() -> None:
    app = create_app(provider_factory=FailingProvider, clock=lambda: NOW)
    with TestClient(app) as client:
        health = client.get("/health").json()
        assert health["dashboard"] == "error"
        assert "401" in health["error"]

        response = client.get("/dashboard/cards")
        assert response.status_code == 503
        assert response.json()["detail"].startswith("Copilot data unavailable:")
        assert client.post("/drilldown/cards/seats").status_code == 503


def test_missing_registry_returns_503(tmp_path: Path) -> None:
    app = create_app(
        provider_factory=_mock_factory,
        clock=lambda: NOW,
        registry_path=tmp_path / "missing.yaml",
    )
    with TestClient(app) as client:
        assert client.get("/health").json()["metrics"] == "error"
        response = client.get("/metrics")
        assert response.status_code == 503
        assert "Metrics registry not found" in response.json()["detail"]
        assert client.get("/dashboard/cards").status_code == 200
