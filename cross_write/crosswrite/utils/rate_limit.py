"""
Fixed-window rate limiter.
Mặc định in-memory theo process (best-effort, không đồng bộ giữa các instance).
Có REDIS_URL thì dùng Redis INCR + EXPIRE với cùng key/window; lỗi Redis => cho qua.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from crosswrite.config import get_settings
from crosswrite.logging_config import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "rl:"
WINDOW_SECONDS = 60


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """In-memory fixed window: reset_at = lần gọi đầu của window + window_seconds."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    async def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            window = _Window(count=1, reset_at=now + self.window_seconds)
            self._windows[key] = window
            return RateLimitResult(True, self.max_requests - 1, window.reset_at)
        if window.count >= self.max_requests:
            return RateLimitResult(False, 0, window.reset_at)
        window.count += 1
        return RateLimitResult(True, self.max_requests - window.count, window.reset_at)

    def reset(self) -> None:
        self._windows.clear()


class RedisFixedWindowRateLimiter:
    """Fixed window trên Redis: INCR key, EXPIRE lần đầu, TTL để tính reset."""

    def __init__(
        self,
        redis_url: str,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS,
    ) -> None:
        self.redis_url = redis_url
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def hit(self, key: str) -> RateLimitResult:
        from redis.asyncio import Redis

        now = time.time()
        rkey = REDIS_KEY_PREFIX + key
        try:
            client = Redis.from_url(self.redis_url, decode_responses=True)
            try:
                pipe = client.pipeline()
                pipe.incr(rkey)
                pipe.expire(rkey, self.window_seconds, nx=True)
                pipe.ttl(rkey)
                count, _, ttl = await pipe.execute()
            finally:
                await client.aclose()
        except Exception as e:
            logger.warning("rate_limit.redis_error", key=key, error=str(e))
            return RateLimitResult(True, self.max_requests, now + self.window_seconds)
        reset_at = now + (ttl if ttl and ttl > 0 else self.window_seconds)
        if count > self.max_requests:
            return RateLimitResult(False, 0, reset_at)
        return RateLimitResult(True, self.max_requests - count, reset_at)

    def reset(self) -> None:
        pass


def build_rate_limiter(max_requests: int, window_seconds: int = WINDOW_SECONDS):
    """Redis nếu có REDIS_URL, ngược lại in-memory."""
    settings = get_settings()
    if settings.redis_url:
        return RedisFixedWindowRateLimiter(settings.redis_url, max_requests, window_seconds)
    return FixedWindowRateLimiter(max_requests, window_seconds)


def client_identifier(headers, client_host: Optional[str]) -> str:
    """IP client: X-Forwarded-For (hop đầu) > X-Real-IP > socket peer."""
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    real_ip = (headers.get("x-real-ip") or "").strip()
    ip = forwarded or real_ip or client_host or "unknown"
    return f"rate_limit:{ip}"
