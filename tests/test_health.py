"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database is probed against the live store
  - No authentication required
"""

from __future__ import annotations

from core.config import get_settings


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == get_settings().app_version
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_reports_database_error(api_client, monkeypatch):
    """A failed ping is reported in components rather than as a 5xx."""
    client, _ = api_client

    async def failing_ping():
        return False

    monkeypatch.setattr(client.app.state.user_store, "ping", failing_ping)
    data = client.get("/api/v1/health").json()
    assert data["components"]["database"] == "error"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
