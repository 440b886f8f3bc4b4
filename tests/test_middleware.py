"""Tests for security middleware — headers, request IDs."""

import pytest


@pytest.mark.asyncio
async def test_security_headers_on_health(anon_client):
    """Health endpoint returns security headers."""
    r = await anon_client.get("/api/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_request_id_generated(anon_client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await anon_client.get("/api/health")
    r2 = await anon_client.get("/api/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(anon_client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await anon_client.get("/api/health", headers={"X-Request-ID": custom_id})
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
async def test_no_hsts_on_http(anon_client):
    """HSTS header is NOT set on HTTP connections (only HTTPS)."""
    r = await anon_client.get("/api/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_error_responses_also_carry_headers(anon_client):
    """A 401 still goes through the middleware stack."""
    r = await anon_client.get("/api/prayers/mine")
    assert r.status_code == 401
    assert r.headers["X-Frame-Options"] == "DENY"
    assert "X-Request-ID" in r.headers
