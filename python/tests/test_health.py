"""Tests for health endpoint."""


def test_health_returns_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"status": "ok"}


def test_health_needs_no_token(client):
    response = client.get("/health", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 200


def test_launcher_builds_app_from_environment(monkeypatch):
    import importlib
    import sys

    from fastapi.testclient import TestClient

    from kindred.config import clear_settings_cache

    monkeypatch.setenv("KINDRED_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET", "launcher-secret")
    for name in ("CLERK_JWKS_URL", "CLERK_ISSUER", "CLERK_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    monkeypatch.delitem(sys.modules, "apps.api.main", raising=False)

    try:
        launcher = importlib.import_module("apps.api.main")
        with TestClient(launcher.app) as client:
            response = client.get("/health")
    finally:
        clear_settings_cache()

    assert response.status_code == 200
    assert response.headers["X-Request-ID"]
