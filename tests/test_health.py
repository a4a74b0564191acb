import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def _patch_checks(monkeypatch, *, database: dict, redis: dict) -> None:
    async def _db():
        return database

    async def _redis():
        return redis

    monkeypatch.setattr(health_module, "check_database", _db)
    monkeypatch.setattr(health_module, "check_redis", _redis)


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "ok"
    assert body["data"]["status"] == "ok"
    assert "timestamp" in body["data"]


def test_health_ready_ok(monkeypatch) -> None:
    _patch_checks(monkeypatch, database={"status": "ok"}, redis={"status": "ok"})

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["api"]["version"] == health_module.APP_VERSION


def test_health_ready_degraded_when_database_down(monkeypatch) -> None:
    _patch_checks(
        monkeypatch,
        database={"status": "error", "error": "unreachable"},
        redis={"status": "ok"},
    )

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["status"] == "error"


def test_health_alias_matches_ready(monkeypatch) -> None:
    _patch_checks(monkeypatch, database={"status": "ok"}, redis={"status": "error", "error": "x"})

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["ready"] is False
    assert payload["checks"]["redis"]["status"] == "error"
