import asyncio

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from core.rate_limiter import RateLimiterMiddleware


def limited_app(calls, per_seconds):
    inner = FastAPI()

    @inner.get("/ping")
    async def ping():
        return {"pong": True}

    @inner.get("/health")
    async def health():
        return {"status": "ok"}

    return RateLimiterMiddleware(inner, calls=calls, per_seconds=per_seconds)


def client_from(limiter, host):
    return AsyncClient(transport=ASGITransport(app=limiter, client=(host, 5000)), base_url="http://testserver")


@pytest.mark.asyncio
async def test_over_limit_is_rejected_with_retry_after():
    limiter = limited_app(calls=2, per_seconds=60)
    async with client_from(limiter, "10.0.0.1") as ac:
        assert (await ac.get("/ping")).status_code == 200
        assert (await ac.get("/ping")).status_code == 200
        resp = await ac.get("/ping")
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert int(resp.headers["Retry-After"]) >= 1
        # health checks are never limited
        assert (await ac.get("/health")).status_code == 200

    async with client_from(limiter, "10.0.0.2") as other:
        assert (await other.get("/ping")).status_code == 200


@pytest.mark.asyncio
async def test_idle_clients_are_forgotten():
    limiter = limited_app(calls=5, per_seconds=0.5)
    for host in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        async with client_from(limiter, host) as ac:
            assert (await ac.get("/ping")).status_code == 200
    assert len(limiter._buckets) == 3

    await asyncio.sleep(0.6)
    async with client_from(limiter, "10.0.0.9") as ac:
        assert (await ac.get("/ping")).status_code == 200
    assert list(limiter._buckets) == ["ip:10.0.0.9"]
