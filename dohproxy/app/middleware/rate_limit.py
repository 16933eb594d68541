"""Rate limiting middleware for the DoH endpoint.

This module provides a fixed-window request counter keyed by client
identity. Supports a bounded in-memory backend for single instances and a
Redis backend, with native key expiry, for deployments that share state.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import redis
import redis.asyncio as aioredis
from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from dohproxy.app.core.config import DNS_QUERY_PATH, settings
from dohproxy.app.core.logging import get_log_context, get_logger
from dohproxy.app.exceptions import RateLimitExceededError

logger = get_logger(__name__)

# Shared by every client whose address cannot be derived from the headers
UNKNOWN_CLIENT = "unknown"

# Checked in order; the first non-empty value wins
CLIENT_IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For")

# Atomic fixed-window check for Redis. A missing key opens a new window with
# a native expiry; a full window is reported without touching the counter.
FIXED_WINDOW_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])

    local current = tonumber(redis.call('GET', key) or '0')
    if current == 0 then
        redis.call('SET', key, 1, 'PX', window_ms)
        return {1, 1, window_ms}
    end

    local ttl = redis.call('PTTL', key)
    if current >= limit then
        return {0, current, ttl}
    end

    local count = redis.call('INCR', key)
    return {1, count, ttl}
"""


def get_client_identity(headers: Mapping[str, str]) -> str:
    """Derive the rate limit identity of a client from its request headers.

    The identity comes from headers set by the edge in front of the proxy,
    so it is spoofable when the proxy is reachable directly. It provides
    approximate per-client fairness and is not an authentication control.

    Args:
        headers: Request headers (case-insensitive mapping)

    Returns:
        The client address, or ``"unknown"`` when no header carries one
    """
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if value:
            # X-Forwarded-For may hold a proxy chain; the first hop is the client
            client = value.split(",")[0].strip()
            if client:
                return client
    return UNKNOWN_CLIENT


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: Optional[int] = None


@dataclass
class ClientRateState:
    """Per-client counter for the current fixed window."""
    count: int
    window_end: float


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    async def check(self, client_id: str) -> RateLimitResult:
        """Count a request for ``client_id`` and decide whether it may proceed."""

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up expired entries."""


class InMemoryRateLimiter(RateLimitBackend):
    """In-memory fixed-window rate limiter.

    Counters live in an OrderedDict used as an LRU: the table never holds
    more than ``max_entries`` clients, the least recently seen being evicted
    first. An evicted client simply starts a fresh window on its next request.

    The check-and-update runs under an asyncio.Lock so concurrent requests
    on the same event loop cannot interleave inside one update.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        retry_after: int = 60,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests allowed per client in one window
            window_seconds: Window length in seconds
            retry_after: Value reported to denied clients, in seconds
            max_entries: Maximum number of clients tracked (LRU eviction)
            clock: Time source returning seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        self._max_entries = max_entries
        self._clock = clock
        self._storage: OrderedDict[str, ClientRateState] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._storage)

    def get_state(self, client_id: str) -> Optional[ClientRateState]:
        """Return the tracked state of a client without touching its recency."""
        return self._storage.get(client_id)

    async def check(self, client_id: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            state = self._storage.get(client_id)

            if state is None or now > state.window_end:
                state = ClientRateState(count=1, window_end=now + self.window_seconds)
                self._storage[client_id] = state
                self._storage.move_to_end(client_id)
                self._enforce_lru_limit()
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_time=state.window_end,
                )

            self._storage.move_to_end(client_id)

            if state.count >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_time=state.window_end,
                    retry_after=self.retry_after,
                )

            state.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - state.count,
                reset_time=state.window_end,
            )

    def _enforce_lru_limit(self) -> None:
        while len(self._storage) > self._max_entries:
            evicted, _ = self._storage.popitem(last=False)
            logger.debug(f"Evicted rate limit entry for {evicted}")

    async def cleanup(self) -> None:
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, state in self._storage.items()
                if now > state.window_end
            ]
            for key in expired:
                del self._storage[key]


class RedisRateLimiter(RateLimitBackend):
    """Redis-based distributed fixed-window rate limiter.

    One key per client holds the window counter and expires with the
    window, so Redis bounds memory on its own.
    """

    KEY_PREFIX = "dohproxy:ratelimit:"

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        retry_after: int = 60,
        fail_closed: Optional[bool] = None,
    ):
        """Initialize Redis rate limiter.

        Args:
            redis_client: Optional redis.asyncio client instance
            redis_url: Redis connection URL used when no client is given
            max_requests: Requests allowed per client in one window
            window_seconds: Window length in seconds
            retry_after: Value reported to denied clients, in seconds
            fail_closed: Deny instead of allow when Redis fails
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        self.fail_closed = (
            settings.rate_limit_fail_closed if fail_closed is None else fail_closed
        )
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def check(self, client_id: str) -> RateLimitResult:
        window_ms = int(self.window_seconds * 1000)
        try:
            allowed, count, ttl_ms = await self._get_redis().eval(
                FIXED_WINDOW_SCRIPT,
                1,
                f"{self.KEY_PREFIX}{client_id}",
                self.max_requests,
                window_ms,
            )
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            return self._handle_redis_failure("connection_error")
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout: {e}")
            return self._handle_redis_failure("timeout")
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            return self._handle_redis_failure("redis_error")

        reset_time = time.time() + max(int(ttl_ms), 0) / 1000
        if not int(allowed):
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after=self.retry_after,
            )
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - int(count)),
            reset_time=reset_time,
        )

    def _handle_redis_failure(self, error_type: str) -> RateLimitResult:
        """Apply the fail-open/fail-closed policy when Redis is unusable."""
        reset_time = time.time() + self.window_seconds
        if self.fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied."
            )
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after=self.retry_after,
            )

        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=1,
            reset_time=reset_time,
        )

    async def cleanup(self) -> None:
        """No-op for Redis (keys expire automatically)."""


class RateLimiter:
    """Main rate limiter that selects the appropriate backend.

    Uses the Redis backend when Redis is enabled in settings, otherwise the
    in-memory backend.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        retry_after: Optional[int] = None,
        max_entries: Optional[int] = None,
        use_redis: Optional[bool] = None,
        redis_url: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests is None:
            max_requests = settings.rate_limit_max_requests
        if window_seconds is None:
            window_seconds = settings.rate_limit_window_seconds
        if retry_after is None:
            retry_after = settings.rate_limit_retry_after
        if max_entries is None:
            max_entries = settings.rate_limit_max_entries
        should_use_redis = settings.redis_enabled if use_redis is None else use_redis

        if should_use_redis:
            self._backend: RateLimitBackend = RedisRateLimiter(
                redis_url=redis_url,
                max_requests=max_requests,
                window_seconds=window_seconds,
                retry_after=retry_after,
            )
            logger.info("Using Redis rate limiter backend")
        else:
            self._backend = InMemoryRateLimiter(
                max_requests=max_requests,
                window_seconds=window_seconds,
                retry_after=retry_after,
                max_entries=max_entries,
                clock=clock,
            )
            logger.debug("Using in-memory rate limiter backend")

    @property
    def backend(self) -> RateLimitBackend:
        return self._backend

    async def check(self, client_id: str) -> RateLimitResult:
        """Check if a request from ``client_id`` is allowed."""
        return await self._backend.check(client_id)

    async def cleanup(self) -> None:
        await self._backend.cleanup()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce per-client rate limits on the DoH endpoint.

    Only requests to the protected paths are counted; informational pages
    pass straight through. Denied requests get a plain-text 429.
    """

    def __init__(
        self,
        app,
        limiter: Optional[RateLimiter] = None,
        protected_paths: tuple[str, ...] = (DNS_QUERY_PATH,),
        **limiter_options: Any,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter(**limiter_options)
        self.protected_paths = protected_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if request.url.path not in self.protected_paths:
            return await call_next(request)

        client_id = get_client_identity(request.headers)
        request.state.client_id = client_id
        result = await self.limiter.check(client_id)

        if not result.allowed:
            error = RateLimitExceededError(retry_after=result.retry_after or 60)
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(
                    request_id=getattr(request.state, "request_id", None),
                    client_id=client_id,
                    path=request.url.path,
                    method=request.method,
                ),
            )
            return PlainTextResponse(
                error.message,
                status_code=error.status_code,
                headers=error.headers,
            )

        return await call_next(request)
