"""
Tests for the application-level endpoints and middleware.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from cineprep.core.rate_limit import install_rate_limiting
from cineprep.main import app


def test_root(anon_client):
    assert anon_client.get("/").json() == {"message": "CinePrep API", "status": "running", "health": "/health"}


def test_health(anon_client):
    response = anon_client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["qwen_configured"] is True
    assert body["timestamp"]


def test_security_headers(anon_client):
    response = anon_client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-XSS-Protection"] == "1; mode=block"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


def test_metrics_exposes_lore_counters(anon_client):
    response = anon_client.get("/metrics")
    assert response.status_code == 200
    assert "cineprep_lore_requests_total" in response.text
    assert "cineprep_lore_cache_hits_total" in response.text


def test_unknown_route_is_404(anon_client):
    assert anon_client.get("/api/nope").status_code == 404


def test_default_rate_limit_middleware_is_installed():
    assert SlowAPIMiddleware in [m.cls for m in app.user_middleware]


def test_default_limit_applies_to_undecorated_routes():
    limited_app = FastAPI()
    install_rate_limiting(limited_app, Limiter(key_func=get_remote_address, default_limits=["2/minute"]))

    @limited_app.get("/ping")
    async def ping():
        return {"ok": True}

    with TestClient(limited_app) as test_client:
        statuses = [test_client.get("/ping").status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
