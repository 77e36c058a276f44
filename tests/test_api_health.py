"""Health endpoints and app-level plumbing."""

import pytest

from app.config import ProductionConfig


def test_ready(client):
    r = client.get("/api/v1/health/ready")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_live_reports_database_and_cache(client):
    r = client.get("/api/v1/health/live")
    assert r.status_code == 200
    data = r.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "ok"
    assert data["checks"]["cache"]["status"] == "ok"


def test_db_diag_counts_core_tables(client, acme):
    r = client.get("/api/v1/health/db-diag")
    data = r.get_json()
    assert data["organizations"] == {"status": "ok", "count": 1}
    assert data["sites"]["count"] == 3


def test_request_id_header(client):
    r = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert "X-Request-Duration-Ms" in r.headers


def test_unknown_route_is_json_404(client):
    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "Not found"


def test_production_requires_database_url(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
    monkeypatch.setenv("SECRET_KEY", "x")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        ProductionConfig()


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/esg")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        ProductionConfig()
