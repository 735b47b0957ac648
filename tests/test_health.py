"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - database component reports 'ok' against a reachable store
  - No authentication required
  - Unknown Host headers are rejected by TrustedHostMiddleware
  - Unknown routes and methods return the ErrorResponse envelope
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_components(api_client):
    resp = api_client.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(api_client):
    resp = api_client.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_untrusted_host_rejected(api_client):
    resp = api_client.client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400


def test_unknown_route_uses_error_envelope(api_client):
    resp = api_client.client.get("/api/v1/no-such-route")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"


def test_wrong_method_uses_error_envelope(api_client):
    resp = api_client.client.delete("/api/v1/health")
    assert resp.status_code == 405
    assert resp.json()["error"]["code"] == "http_405"
