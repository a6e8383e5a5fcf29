"""
Recipe Share Backend — Rate Limit Middleware Tests
====================================================

What we test:
    ✅ Requests within capacity pass, the next one gets 429 + Retry-After
    ✅ Tokens refill over time
    ✅ Health and media paths are never limited
    ✅ The 429 body is the standard error envelope, request id included
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from recipeshare.middleware.rate_limit import RateLimitMiddleware
from recipeshare.middleware.request_id import RequestIDMiddleware


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def build_app(clock: FakeClock) -> FastAPI:
    app = FastAPI()

    @app.get("/api/v1/recipe")
    async def recipes():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/media/{path:path}")
    async def media(path: str):
        return {"path": path}

    # 2 requests, refilling 1 token per second
    app.add_middleware(RateLimitMiddleware, capacity=2, refill_rate=1, interval=1, clock=clock)
    app.add_middleware(RequestIDMiddleware)
    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limited_client(clock):
    transport = ASGITransport(app=build_app(clock))
    return AsyncClient(transport=transport, base_url="http://test")


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_bucket_exhaustion(self, limited_client):
        async with limited_client as client:
            assert (await client.get("/api/v1/recipe")).status_code == 200
            assert (await client.get("/api/v1/recipe")).status_code == 200

            rejected = await client.get("/api/v1/recipe")

        assert rejected.status_code == 429
        assert rejected.headers["Retry-After"] == "1"
        body = rejected.json()
        assert body["success"] is False
        assert body["error"] == "rate_limit_exceeded"

    @pytest.mark.asyncio
    async def test_refill(self, limited_client, clock):
        async with limited_client as client:
            await client.get("/api/v1/recipe")
            await client.get("/api/v1/recipe")
            assert (await client.get("/api/v1/recipe")).status_code == 429

            clock.now += 1.0

            assert (await client.get("/api/v1/recipe")).status_code == 200

    @pytest.mark.asyncio
    async def test_excluded_paths(self, limited_client):
        async with limited_client as client:
            for _ in range(5):
                assert (await client.get("/health")).status_code == 200
                assert (await client.get("/media/recipe-share/x.webp")).status_code == 200

    @pytest.mark.asyncio
    async def test_rejection_uses_error_envelope(self, limited_client):
        async with limited_client as client:
            await client.get("/api/v1/recipe")
            await client.get("/api/v1/recipe")

            rejected = await client.get("/api/v1/recipe", headers={"X-Request-ID": "req-429"})

        body = rejected.json()
        assert body["requestId"] == "req-429"
        assert rejected.headers["X-Request-ID"] == "req-429"
        assert body["message"] == "Too many requests. Please wait 1 seconds before trying again."
        assert body["details"] == {"retry_after": 1}
