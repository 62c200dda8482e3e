"""
Rate limiting middleware.

Counts requests per client IP and, when an X-API-Key header is sent, per key,
in fixed one-minute windows. Either limit being exceeded returns 429 with
Retry-After. Health checks, Stripe webhooks and cron calls are exempt.
"""
import time
import logging
from collections import defaultdict
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE_IP = 100
DEFAULT_REQUESTS_PER_MINUTE_USER = 100
WINDOW_SECONDS = 60


class WindowCounter:
    """Per-process request counters keyed by (identifier, window start)."""

    def __init__(self, window_seconds: int = WINDOW_SECONDS):
        self._counts: dict[tuple[str, int], int] = defaultdict(int)
        self._window = window_seconds

    def _window_start(self) -> int:
        return int(time.time() // self._window) * self._window

    def hit(self, key: str) -> int:
        """Count one request for key; return the count in the current window."""
        w = self._window_start()
        self._counts[(key, w)] += 1
        return self._counts[(key, w)]

    def seconds_left(self) -> int:
        return max(1, self._window_start() + self._window - int(time.time()))

    def prune(self):
        w = self._window_start()
        for k in [k for k in self._counts if k[1] < w]:
            del self._counts[k]

    def reset(self):
        self._counts.clear()


_counter: Optional[WindowCounter] = None


def get_counter() -> WindowCounter:
    global _counter
    if _counter is None:
        _counter = WindowCounter()
    return _counter


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "0.0.0.0"


def _too_many_requests(retry_after_seconds: int) -> Response:
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please retry after the time indicated in Retry-After.",
            "retry_after_seconds": retry_after_seconds,
        },
        headers={"Retry-After": str(retry_after_seconds)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        requests_per_minute_ip: int = DEFAULT_REQUESTS_PER_MINUTE_IP,
        requests_per_minute_user: int = DEFAULT_REQUESTS_PER_MINUTE_USER,
        exempt_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.rpm_ip = requests_per_minute_ip
        self.rpm_user = requests_per_minute_user
        self.exempt = set(exempt_paths or ["/health"])

    def is_exempt(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.exempt)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.is_exempt(request.url.path):
            return await call_next(request)

        counter = get_counter()
        counter.prune()

        ip = client_ip(request)
        if counter.hit(f"ip:{ip}") > self.rpm_ip:
            logger.warning("Rate limit exceeded for IP %s", ip)
            return _too_many_requests(counter.seconds_left())

        api_key = request.headers.get("x-api-key")
        if api_key and counter.hit(f"key:{api_key}") > self.rpm_user:
            logger.warning("Rate limit exceeded for API key ending %s", api_key[-4:])
            return _too_many_requests(counter.seconds_left())

        return await call_next(request)
