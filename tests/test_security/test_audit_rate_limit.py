"""
Audit Rate Limit Tests.

Tests: token bucket refill, per-user allowance on POST /api/audit, other
routes and anonymous calls pass through, rejected requests hand their
token back, a stale cookie does not hide a valid Bearer token.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from eduaudit.auth.jwt import create_session_token
from eduaudit.config import settings
from eduaudit.middleware.rate_limit import AuditRateLimitMiddleware, TokenBucket


def _app(per_minute=60, burst=2) -> FastAPI:
    app = FastAPI()
    app.add_middleware(AuditRateLimitMiddleware, per_minute=per_minute, burst=burst)

    @app.post("/api/audit")
    async def audit(request: Request):
        if request.query_params.get("invalid"):
            return JSONResponse(status_code=400, content={"error": "Business description required"})
        return {"success": True}

    @app.get("/api/audits")
    async def audits():
        return []

    return app


def _auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_session_token(user_id)}"}


class TestTokenBucket:
    def test_starts_full(self):
        bucket = TokenBucket(capacity=3, rate=0.0)
        assert [bucket.consume() for _ in range(4)] == [True, True, True, False]

    def test_refills_over_time(self):
        bucket = TokenBucket(capacity=1, rate=1.0)
        assert bucket.consume()
        bucket.last_refill -= 2.0
        assert bucket.consume()

    def test_refund_is_capped(self):
        bucket = TokenBucket(capacity=1, rate=0.0)
        bucket.refund()
        assert [bucket.consume() for _ in range(2)] == [True, False]
        bucket.refund()
        assert bucket.consume()


class TestAuditRateLimitMiddleware:
    @pytest.mark.asyncio
    async def test_limits_per_user(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as c:
            statuses = [(await c.post("/api/audit", headers=_auth(1))).status_code for _ in range(3)]
            other = await c.post("/api/audit", headers=_auth(2))

        assert statuses == [200, 200, 429]
        assert other.status_code == 200

    @pytest.mark.asyncio
    async def test_429_body_and_header(self):
        async with AsyncClient(transport=ASGITransport(app=_app(burst=1)), base_url="http://test") as c:
            await c.post("/api/audit", headers=_auth(1))
            resp = await c.post("/api/audit", headers=_auth(1))

        assert resp.status_code == 429
        assert "error" in resp.json()
        assert resp.headers["Retry-After"] == "1"

    @pytest.mark.asyncio
    async def test_history_not_limited(self):
        async with AsyncClient(transport=ASGITransport(app=_app(burst=1)), base_url="http://test") as c:
            statuses = [(await c.get("/api/audits", headers=_auth(1))).status_code for _ in range(5)]
        assert statuses == [200] * 5

    @pytest.mark.asyncio
    async def test_anonymous_passes_through(self):
        """Unauthenticated requests are left to the route's own 401."""
        async with AsyncClient(transport=ASGITransport(app=_app(burst=1)), base_url="http://test") as c:
            statuses = [(await c.post("/api/audit")).status_code for _ in range(3)]
        assert statuses == [200] * 3

    @pytest.mark.asyncio
    async def test_rejected_requests_keep_allowance(self):
        app = _app(per_minute=1, burst=1)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            rejected = [
                (await c.post("/api/audit", params={"invalid": "1"}, headers=_auth(1))).status_code
                for _ in range(5)
            ]
            accepted = await c.post("/api/audit", headers=_auth(1))

        assert rejected == [400] * 5
        assert accepted.status_code == 200

    @pytest.mark.asyncio
    async def test_stale_cookie_falls_back_to_bearer(self):
        """The Bearer identity is the one charged, so its allowance runs out."""
        async with AsyncClient(
            transport=ASGITransport(app=_app(per_minute=1, burst=1)),
            base_url="http://test",
            cookies={settings.session_cookie_name: "not-a-jwt"},
        ) as c:
            statuses = [(await c.post("/api/audit", headers=_auth(1))).status_code for _ in range(2)]
        assert statuses == [200, 429]
