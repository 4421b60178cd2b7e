"""
In-memory fixed-window rate limiting for the API.

Counters are keyed by `path:client` and live for one window. A request
is allowed while the window's count is below the limit; blocked requests
do not consume the window.
"""
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ..utils.logger import get_logger

logger = get_logger("rate_limit")

MINUTE_MS = 60 * 1000
CLEANUP_INTERVAL_MS = 60 * 1000

MUTATING_METHODS = ("POST", "PUT", "DELETE", "PATCH")
AUTHENTICATED_PATHS = ("/alerts", "/workspaces", "/positions")
PUBLIC_PATHS = ("/polymarket", "/adjacent-news")


def now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: float  # epoch ms
    retry_after: Optional[int] = None

    def headers(self) -> dict[str, str]:
        reset = datetime.fromtimestamp(self.reset_time / 1000, tz=timezone.utc)
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimitStore:
    """Shared counters: key -> [count, reset_time_ms]."""

    def __init__(self, cleanup_interval_ms: float = CLEANUP_INTERVAL_MS):
        self.cleanup_interval_ms = cleanup_interval_ms
        self._entries: dict[str, list[float]] = {}
        self._last_cleanup = 0.0

    def __len__(self) -> int:
        return len(self._entries)

    def hit(self, key: str, window_ms: float, max_requests: int, now: float) -> RateLimitResult:
        self.cleanup(now)

        entry = self._entries.get(key)
        if entry is None or entry[1] < now:
            entry = [0, now + window_ms]

        allowed = entry[0] < max_requests
        if allowed:
            entry[0] += 1
        self._entries[key] = entry

        return RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - int(entry[0])),
            reset_time=entry[1],
            retry_after=None if allowed else math.ceil((entry[1] - now) / 1000),
        )

    def cleanup(self, now: float, force: bool = False) -> None:
        """Drop expired windows, at most once per cleanup interval."""
        if not force and now - self._last_cleanup < self.cleanup_interval_ms:
            return
        self._last_cleanup = now
        for key in [k for k, (_, reset) in self._entries.items() if reset < now]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


def get_client_id(request: Request) -> str:
    """First forwarded-for hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def user_key(request: Request) -> str:
    user_id = (
        request.query_params.get("userId")
        or request.headers.get("x-user-id")
        or "anonymous"
    )
    return f"user:{user_id}"


class RateLimiter:
    """
    A fixed-window limit of `max_requests` per `window_ms`.

    Args:
        key_func: Maps a request to the client part of the key
        store: Counter store, shared between limiters of one app
    """

    def __init__(
        self,
        window_ms: float,
        max_requests: int,
        store: RateLimitStore,
        key_func: Callable[[Request], str] = get_client_id,
        clock: Callable[[], float] = now_ms
    ):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.store = store
        self.key_func = key_func
        self.clock = clock

    def check(self, request: Request) -> RateLimitResult:
        key = f"{request.url.path}:{self.key_func(request)}"
        return self.store.hit(key, self.window_ms, self.max_requests, self.clock())


class RateLimiters:
    """The preset limiters of one app, over one shared store."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = now_ms
    ):
        self.store = store or RateLimitStore()
        self.clock = clock
        self.strict = self.custom(MINUTE_MS, 10)
        self.standard = self.custom(MINUTE_MS, 60)
        self.moderate = self.custom(MINUTE_MS, 100)
        self.generous = self.custom(MINUTE_MS, 200)

        # Aliases used by the middleware
        self.write = self.strict
        self.read = self.standard
        self.public = self.generous
        self.authenticated = self.user_based(120, MINUTE_MS)

    def custom(self, window_ms: float, max_requests: int) -> RateLimiter:
        return RateLimiter(window_ms, max_requests, self.store, clock=self.clock)

    def user_based(self, max_requests: int, window_ms: float = MINUTE_MS) -> RateLimiter:
        return RateLimiter(window_ms, max_requests, self.store, key_func=user_key, clock=self.clock)

    def select(self, method: str, path: str) -> RateLimiter:
        """Pick the limiter for a request."""
        if method.upper() in MUTATING_METHODS:
            return self.write
        if any(segment in path for segment in AUTHENTICATED_PATHS):
            return self.authenticated
        if any(segment in path for segment in PUBLIC_PATHS):
            return self.public
        return self.read


def too_many_requests(result: RateLimitResult) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests",
            "message": f"Rate limit exceeded. Please try again in {result.retry_after} seconds.",
            "retryAfter": result.retry_after,
        },
        headers=result.headers(),
    )


def rate_limit_middleware(limiters: RateLimiters, prefix: str = "/api/"):
    """Build an HTTP middleware applying the preset limiters under `prefix`."""

    async def middleware(request: Request, call_next):
        if not request.url.path.startswith(prefix) or request.method == "OPTIONS":
            return await call_next(request)

        result = limiters.select(request.method, request.url.path).check(request)
        if not result.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"path": request.url.path, "client": get_client_id(request)}
            )
            return too_many_requests(result)

        response = await call_next(request)
        for name, value in result.headers().items():
            response.headers[name] = value
        return response

    return middleware
