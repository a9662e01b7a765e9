from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from .metrics import wallet_cache_lookups_total

SUPPORTED_BACKENDS = {"memory"}


@dataclass
class CacheEntry:
    value: Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class WalletCache:
    """In-process TTL cache for Luxor payment settings.

    Expired entries are not evicted on read. They stay until overwritten or
    invalidated so the gateway can fall back to them when Luxor rate limits.
    """

    def __init__(self, ttl_seconds: int = 600, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.age(self._clock()) < self.ttl_seconds

    def get(self, key: str) -> Any | None:
        """Return the cached value for ``key`` if it is still fresh."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache MISS: {}", key)
            wallet_cache_lookups_total.labels(result="miss").inc()
            return None
        if not self.is_fresh(entry):
            logger.debug("Cache EXPIRED: {}", key)
            wallet_cache_lookups_total.labels(result="expired").inc()
            return None
        logger.debug("Cache HIT: {}", key)
        wallet_cache_lookups_total.labels(result="hit").inc()
        return entry.value

    def peek(self, key: str) -> CacheEntry | None:
        """Return the raw entry for ``key`` whatever its age."""
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        logger.debug("Cache SET: {} (expires in {}s)", key, self.ttl_seconds)

    def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("Cache INVALIDATED: {}", key)
        return removed

    def invalidate_pattern(self, pattern: re.Pattern[str] | str) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            del self._entries[key]
        logger.info("Cache INVALIDATED PATTERN: {} ({} entries)", regex.pattern, len(matched))
        return len(matched)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cache CLEARED all entries")

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "keys": list(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }


def create_wallet_cache(backend: str, ttl_seconds: int, clock: Callable[[], float] = time.monotonic) -> WalletCache:
    """Build the cache backend named by configuration."""
    backend = backend.lower()
    if backend not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported wallet cache backend {backend!r}; use one of {sorted(SUPPORTED_BACKENDS)}")
    logger.info("Initializing {} wallet cache with TTL {}s", backend, ttl_seconds)
    return WalletCache(ttl_seconds=ttl_seconds, clock=clock)
