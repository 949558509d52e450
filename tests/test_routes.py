# tests/test_routes.py
import pytest
from fastapi.testclient import TestClient

from fakes import make_service
from upvotes_api.config.settings import settings
from upvotes_api.core.errors import ConfigurationError
from upvotes_worker.server import routes
from upvotes_worker.server.app import app

HEADERS = {"X-API-Key": "dashboard-key"}


@pytest.fixture
def client(monkeypatch, repository, api, sleep):
    monkeypatch.setattr(settings, "dashboard_api_key", "dashboard-key")
    monkeypatch.setattr(routes, "service_factory", lambda: make_service(repository, api, sleep))
    monkeypatch.setattr(routes, "run_state", None)
    monkeypatch.setattr(routes, "reconciliation_scheduler", None)
    return TestClient(app)


def test_trigger_requires_api_key(client):
    assert client.post("/scheduled-status-check").status_code == 422
    assert client.post("/scheduled-status-check", headers={"X-API-Key": "wrong"}).status_code == 401


def test_trigger_unavailable_without_dashboard_key(client, monkeypatch):
    monkeypatch.setattr(settings, "dashboard_api_key", None)

    response = client.post("/scheduled-status-check", headers=HEADERS)

    assert response.status_code == 503


def test_trigger_runs_reconciliation(client, repository, api):
    repository.add(1, external_order_id="B")
    api.respond("B", payload={"status": "Completed", "votes_delivered": 42})

    response = client.post(
        "/scheduled-status-check",
        headers=HEADERS,
        json={"next_run": "2024-06-01T16:00:00Z"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["totalChecked"] == 1
    assert body["updated"] == 1
    assert body["results"][0]["votesDelivered"] == 42
    assert repository.row(1)["status"] == "Completed"


def test_trigger_accepts_non_json_body(client):
    response = client.post("/scheduled-status-check", headers=HEADERS, content=b"ping")

    assert response.status_code == 200
    assert response.json()["totalChecked"] == 0


def test_trigger_reports_configuration_error(client, monkeypatch):
    def broken_factory():
        raise ConfigurationError("Invalid configuration: BUYUPVOTES_API_KEY is not set")

    monkeypatch.setattr(routes, "service_factory", broken_factory)

    response = client.post("/scheduled-status-check", headers=HEADERS)

    assert response.status_code == 500
    assert "BUYUPVOTES_API_KEY" in response.json()["error"]


def test_refresh_order(client, repository, api):
    repository.add(3, external_order_id="X")
    api.respond("X", payload={"status": "In progress", "votes_delivered": 5})

    response = client.post("/api/orders/upvote/3/refresh", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["updated"] is True
    assert response.json()["votes_delivered"] == 5


def test_refresh_unknown_kind_or_order(client):
    assert client.post("/api/orders/follower/1/refresh", headers=HEADERS).status_code == 404
    assert client.post("/api/orders/upvote/99/refresh", headers=HEADERS).status_code == 404


def test_refresh_write_failure_is_not_a_server_error(client, repository, api):
    repository.add(3, external_order_id="X")
    api.respond("X", payload={"status": "Completed", "votes_delivered": 5})
    repository.fail_writes_for.add(3)

    response = client.post("/api/orders/upvote/3/refresh", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["updated"] is False
    assert response.json()["message"].startswith("Database update failed")


def test_bulk_refresh(client, repository):
    repository.add(1)
    repository.add(2, external_order_id="unknown")

    response = client.post("/api/orders/upvote/refresh", headers=HEADERS, json={"order_ids": [1, 2]})

    assert response.status_code == 200
    assert response.json() == {"updated": 1, "failed": 1}


def test_bulk_refresh_validation(client):
    assert client.post("/api/orders/upvote/refresh", headers=HEADERS, json={"order_ids": []}).status_code == 422
    assert client.post("/api/orders/follower/refresh", headers=HEADERS, json={"order_ids": [1]}).status_code == 404


def test_health_without_scheduler_or_redis(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "upvotes-status-worker",
        "scheduler": "disabled",
        "redis": "disabled",
    }


def test_history_endpoint(client, monkeypatch, run_state):
    monkeypatch.setattr(routes, "run_state", run_state)

    response = client.get("/api/reconciliation/history", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True, "history": []}

    response = client.get("/api/reconciliation/history?limit=11", headers=HEADERS)
    assert response.status_code == 422


def test_status_endpoint_without_redis(client):
    response = client.get("/api/reconciliation/status", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["success"] is False
