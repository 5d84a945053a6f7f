"""
In-memory TTL cache cho kết quả analytics (process-wide).
Entry hết hạn bị xóa khi đọc. Không invalidate khi có event mới; key space không giới hạn.
"""
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from crosswrite.config import get_settings

DEFAULT_TTL_SECONDS = 120


@dataclass
class _Entry:
    data: Any
    stored_at: float
    ttl: float


def make_cache_key(user_id: str, view: str, start: datetime, end: datetime, granularity: str = "day") -> str:
    return f"{user_id}:{view}:{start.isoformat()}:{end.isoformat()}:{granularity or 'day'}"


class AnalyticsCache:
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.stored_at + entry.ttl:
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = _Entry(data=data, stored_at=self._clock(), ttl=ttl)

    def invalidate_prefix(self, prefix: str) -> int:
        """Xóa mọi key bắt đầu bằng prefix; trả về số key đã xóa."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        return {"size": len(self._entries), "keys": list(self._entries)}


_cache: Optional[AnalyticsCache] = None


def get_analytics_cache() -> AnalyticsCache:
    global _cache
    if _cache is None:
        _cache = AnalyticsCache(ttl_seconds=get_settings().analytics_cache_ttl_seconds)
    return _cache
