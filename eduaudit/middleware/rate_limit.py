"""
Audit generation rate limiter — token bucket per identity.

Every generation costs a provider call, so ``POST /api/audit`` is limited
per signed-in user. Unauthenticated calls are left alone; they are
rejected with 401 before reaching the model anyway. A token spent on a
request that ends in a 4xx is handed back.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from eduaudit.auth.gate import resolve_session, session_tokens
from eduaudit.config import settings

logger = structlog.get_logger(__name__)

LIMITED_ROUTES = frozenset({("POST", f"{settings.api_prefix}/audit")})


@dataclass
class TokenBucket:
    """Token bucket for rate limiting."""

    capacity: float
    rate: float  # tokens per second
    tokens: float = -1.0
    last_refill: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        if self.tokens < 0:
            self.tokens = self.capacity

    def consume(self) -> bool:
        """Try to consume a token. Returns True if allowed."""
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    def refund(self) -> None:
        """Give back a token taken by a request that never reached the model."""
        self.tokens = min(self.capacity, self.tokens + 1)


class AuditRateLimitMiddleware(BaseHTTPMiddleware):
    """Returns 429 once a user exceeds their audit generation allowance."""

    def __init__(self, app, per_minute: int | None = None, burst: int | None = None):
        super().__init__(app)
        self.per_minute = per_minute or settings.audit_rate_limit_per_minute
        self.burst = burst or settings.audit_rate_limit_burst
        self._buckets: dict[int, TokenBucket] = defaultdict(
            lambda: TokenBucket(capacity=float(self.burst), rate=self.per_minute / 60.0)
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        if (request.method, request.url.path.rstrip("/")) not in LIMITED_ROUTES:
            return await call_next(request)

        user_id = self._user_id(request)
        if user_id is None:
            return await call_next(request)

        bucket = self._buckets[user_id]
        if not bucket.consume():
            logger.warning("audit_rate_limited", user_id=user_id)
            return Response(
                status_code=429,
                content='{"error":"Too many audit requests. Please retry after a moment."}',
                media_type="application/json",
                headers={"Retry-After": str(max(1, int(60 / self.per_minute)))},
            )

        response = await call_next(request)
        # Rejected before generation (bad body, unknown user): no model call was made
        if 400 <= response.status_code < 500:
            bucket.refund()
        return response

    @staticmethod
    def _user_id(request: Request) -> int | None:
        user_id, _ = resolve_session(session_tokens(request, settings.session_cookie_name))
        return user_id
