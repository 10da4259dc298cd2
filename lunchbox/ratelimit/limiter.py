"""
Fixed-window rate limiting.

The window is reset wholesale once ``now - window_start`` exceeds the window
length; it does not roll continuously. The in-process table starts empty on
every restart and is not shared between instances, which is accepted for a
single-instance deployment. ``RedisRateLimiter`` hoists the counters into a
shared store for multi-instance deployments.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol

import redis

from .config import DEFAULT_RATE_LIMIT_CONFIG, RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def admit(self, source_id: str) -> bool: ...


@dataclass
class RateLimitRecord:
    source_id: str
    count: int
    window_start: float


class InMemoryRateLimiter:
    def __init__(
        self,
        config: RateLimitConfig = DEFAULT_RATE_LIMIT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_s = config.window_s
        self.capacity = config.capacity
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def admit(self, source_id: str) -> bool:
        now = self._clock()
        with self._lock:
            record = self._records.get(source_id)
            if record is None:
                record = RateLimitRecord(source_id, 0, now)
                self._records[source_id] = record
            if now - record.window_start > self.window_s:
                record.count = 0
                record.window_start = now
            record.count += 1
            return record.count <= self.capacity

    def get_record(self, source_id: str) -> RateLimitRecord | None:
        return self._records.get(source_id)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


class RedisRateLimiter:
    """Same window semantics, counted with an atomic INCR per window key."""

    def __init__(
        self,
        client,
        config: RateLimitConfig = DEFAULT_RATE_LIMIT_CONFIG,
        scope: str = "default",
    ) -> None:
        self._client = client
        self.window_s = config.window_s
        self.capacity = config.capacity
        self.namespace = f"{config.namespace}:{scope}"

    def admit(self, source_id: str) -> bool:
        key = f"{self.namespace}:{source_id}"
        try:
            pipe = self._client.pipeline()
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = pipe.execute()
            if ttl is None or ttl < 0:
                self._client.expire(key, int(self.window_s))
        except Exception:
            # admit() never raises; a store outage admits.
            logger.warning("Rate limit store unavailable, admitting %s", source_id, exc_info=True)
            return True
        return int(count) <= self.capacity


def build_limiter(
    config: RateLimitConfig = DEFAULT_RATE_LIMIT_CONFIG,
    scope: str = "default",
) -> RateLimiter:
    if config.redis_url:
        logger.info("Using Redis rate limiter namespace=%s scope=%s", config.namespace, scope)
        return RedisRateLimiter(redis.Redis.from_url(config.redis_url), config, scope)
    return InMemoryRateLimiter(config)
