"""Unit tests for health and monitoring routes."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from invoice_notifier.main import create_app


@pytest.fixture
def app():
    return create_app()


def _task(done: bool) -> MagicMock:
    task = MagicMock()
    task.done.return_value = done
    return task


def test_health(app):
    response = TestClient(app).get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ready_when_all_watchers_run(app):
    app.state.watchers = {"alpha": SimpleNamespace(processed=3, failed=1, in_flight=0)}
    app.state.watcher_tasks = {"alpha": _task(done=False)}

    response = TestClient(app).get("/api/v1/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "watchers": {"alpha": {"running": True, "processed": 3, "failed": 1, "in_flight": 0}},
    }


def test_degraded_when_a_watcher_stopped(app):
    app.state.watchers = {
        "alpha": SimpleNamespace(processed=0, failed=0, in_flight=0),
        "beta": SimpleNamespace(processed=0, failed=0, in_flight=0),
    }
    app.state.watcher_tasks = {"alpha": _task(done=False), "beta": _task(done=True)}

    body = TestClient(app).get("/api/v1/health/ready").json()

    assert body["status"] == "degraded"
    assert body["watchers"]["beta"]["running"] is False


def test_degraded_before_startup(app):
    assert TestClient(app).get("/api/v1/health/ready").json() == {"status": "degraded", "watchers": {}}


def test_metrics_requires_token(app):
    client = TestClient(app)

    assert client.get("/api/v1/metrics").status_code == 403
    assert client.get("/api/v1/metrics", headers={"X-Metrics-Token": "wrong"}).status_code == 403


def test_metrics_with_token(app):
    response = TestClient(app).get("/api/v1/metrics", headers={"X-Metrics-Token": "test-metrics-token"})

    assert response.status_code == 200
    assert "notifier_settled_invoices_total" in response.text


def test_metrics_without_configured_token(app):
    with patch("invoice_notifier.api.routes.monitoring.get_settings") as mock_settings:
        mock_settings.return_value.metrics_token = None
        response = TestClient(app).get("/api/v1/metrics", headers={"X-Metrics-Token": "x"})

    assert response.status_code == 500
