"""
Cook Journal Backend — Rate Limiting Middleware
=================================================

What:  Fixed-window request budgets per caller identity.
Why:   Slows credential stuffing on /api/auth/* and write floods elsewhere.
How:   An in-memory counter per (bucket, identity) that resets when its
       window elapses.
Who:   Applied to every request via Starlette middleware.
When:  First in the middleware chain (rejects abuse before any processing).

Buckets:
    auth   any request under /api/auth/
           auth_rate_limit_requests per auth_rate_limit_window seconds
    write  POST/PUT/PATCH/DELETE anywhere else
           write_rate_limit_requests per write_rate_limit_window seconds
    GET/HEAD/OPTIONS outside /api/auth/ are never counted.

Identity:
    auth   always the client IP; a cookie is client-controlled and a fresh
           value per request must not buy a fresh budget
    write  the user id behind the session cookie when it names a live
           session, otherwise the client IP. Logged-in users behind one NAT
           therefore do not share a budget, and a forged cookie counts
           against its IP.

Production Upgrade Path:
    State lives in this process only. With several workers or instances each
    one enforces its own budget; move the counters to Redis (INCR + EXPIRE)
    to share them.
"""

import logging
import math
import time
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cookjournal.config import settings
from cookjournal.database import async_session_factory
from cookjournal.exceptions import RateLimitError, error_response
from cookjournal.services.auth_service import auth_service

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/auth/"
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class FixedWindowCounter:
    """
    Counts hits per key inside a window that starts at the key's first hit.

    hit() returns None when the request is allowed, or the whole seconds
    until the window resets when it is not.
    """

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        # key → (window start, hits in window)
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        now = time.monotonic() if now is None else now

        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window:
            start, count = now, 0

        if count >= self.limit:
            return max(1, math.ceil(start + self.window - now))

        self._windows[key] = (start, count + 1)

        if len(self._windows) > 10_000:
            self._prune(now)
        return None

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Pruned %d expired rate-limit windows", len(expired))

    def reset(self) -> None:
        self._windows.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects over-budget requests with 429, a Retry-After header and the
    standard `{"errors": [...]}` body.
    """

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self.auth_counter = FixedWindowCounter(
            settings.auth_rate_limit_requests, settings.auth_rate_limit_window
        )
        self.write_counter = FixedWindowCounter(
            settings.write_rate_limit_requests, settings.write_rate_limit_window
        )

    def _counter_for(self, request: Request) -> Optional[FixedWindowCounter]:
        if request.url.path.startswith(AUTH_PREFIX):
            return self.auth_counter
        if request.method in WRITE_METHODS:
            return self.write_counter
        return None

    @staticmethod
    def client_ip(request: Request) -> str:
        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )
        return f"ip:{client_ip}"

    async def identity(self, request: Request, counter: FixedWindowCounter) -> str:
        if counter is self.auth_counter:
            return self.client_ip(request)

        sid = request.cookies.get(settings.session_cookie_name)
        if sid:
            async with async_session_factory() as db:
                user_id = await auth_service.session_user_id(db, sid)
            if user_id is not None:
                return f"user:{user_id}"
        return self.client_ip(request)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        counter = self._counter_for(request)
        if counter is None:
            return await call_next(request)

        key = await self.identity(request, counter)
        retry_after = counter.hit(key)
        if retry_after is not None:
            logger.warning(
                "Rate limit exceeded for %s on %s %s (%d per %ds)",
                key.split(":", 1)[0],
                request.method,
                request.url.path,
                counter.limit,
                counter.window,
            )
            exc = RateLimitError(retry_after=retry_after)
            return error_response(
                exc.status_code,
                exc.to_errors(),
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
