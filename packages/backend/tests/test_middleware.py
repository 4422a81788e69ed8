"""Middleware tests — security headers, request ids, rate-limit buckets.

Rate limiting itself is skipped in tests (no Redis), so only bucket
routing is checked here.
"""

import pytest

from auratask.middleware.rate_limit import bucket_for


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    r = await client.get("/api/v1/health")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_api_responses_not_cached(client):
    r = await client.get("/api/v1/settings/me")
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_request_id_generated(client):
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-12345"})
    assert r.headers["X-Request-ID"] == "trace-12345"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    r = await client.get("/api/v1/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.parametrize("path,bucket", [
    ("/api/v1/auth/login", "auth"),
    ("/api/v1/auth/register", "auth"),
    ("/api/v1/auth/guest", "auth"),
    ("/api/v1/auth/me", "api"),
    ("/api/v1/ai/process-task", "ai"),
    ("/api/v1/admin/pool-keys", "admin"),
    ("/api/v1/migrate-guest-data", "api"),
])
def test_rate_limit_buckets(path, bucket):
    assert bucket_for(path) == bucket
