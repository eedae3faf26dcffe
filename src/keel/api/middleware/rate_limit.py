"""
Per-client rate-limiting stage backed by token buckets.

Each caller is identified by its transport peer address or, when
``trust_proxy`` is set, by the first ``X-Forwarded-For`` entry (falling
back to ``X-Real-IP``).  Every caller gets a bucket holding ``burst``
tokens that refills at ``rps`` tokens per second.  A request that finds
the bucket empty receives 429 with a ``Retry-After`` header before any
routing work happens.

The 429 body has the same ``{code, message}`` shape as the error
taxonomy, with code ``rate_limited``.

Tags:
    keel, api, middleware, rate-limiting, token-bucket, 429

Doc-Types:
    api-reference
"""

from __future__ import annotations

import math
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from keel.api.middleware.pipeline import CallNext, Stage
from keel.core.rate_limit import KeyedRateLimiter
from keel.core.settings import RateLimitPolicy

RATE_LIMITED_CODE = "rate_limited"
RATE_LIMITED_MESSAGE = "Too many requests"


def client_key(request: Request, trust_proxy: bool) -> str:
    """Identify the caller for rate-limit accounting."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    return request.client.host if request.client else "unknown"


class RateLimitStage(Stage):
    """Reject callers whose token bucket is empty.

    Parameters
    ----------
    policy:
        Sustained rate, burst and proxy trust.
    log:
        Logger for rejection records.
    limiter:
        Optional pre-built limiter, mostly for tests with a fake clock.
    """

    name = "rate_limit"

    def __init__(
        self,
        policy: RateLimitPolicy,
        log: Any,
        limiter: KeyedRateLimiter | None = None,
    ) -> None:
        self._policy = policy
        self._log = log
        if limiter is None:
            limiter = KeyedRateLimiter(rate=policy.rps, capacity=policy.burst)
        self._limiter = limiter

    @property
    def limiter(self) -> KeyedRateLimiter:
        return self._limiter

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        key = client_key(request, self._policy.trust_proxy)
        if self._limiter.acquire(key):
            return await call_next(request)

        retry_after = max(1, math.ceil(self._limiter.get_wait_time(key)))
        self._log.info("rate_limited", client=key, retry_after=retry_after)
        return JSONResponse(
            status_code=429,
            content={"code": RATE_LIMITED_CODE, "message": RATE_LIMITED_MESSAGE},
            headers={"Retry-After": str(retry_after)},
        )
