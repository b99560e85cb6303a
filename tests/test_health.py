"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a reachable store
  - No session required (public in the access policy)
  - Degraded status when the store cannot be reached
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_components(api):
    resp = api.client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_session_required(api):
    """Reachable without any cookie."""
    api.client.cookies.clear()
    resp = api.client.get("/health")
    assert resp.status_code == 200


def test_health_reports_degraded_database(api, monkeypatch):
    store = api.client.app.state.store
    monkeypatch.setattr(store, "ping", lambda: False)
    data = api.client.get("/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
