"""
TTL key/value cache.

Entries are immutable once written and expire lazily: a read after
``expires_at`` is a miss, but nothing is purged until the key is written
again. Writes are unconditional overwrites (last writer wins).

Each kind of cached data lives in its own namespace with its own key
fingerprint and TTL. Travel times expire fastest because traffic changes;
place metadata lives longest.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import redis

from .config import DEFAULT_ENGINE_CONFIG

logger = logging.getLogger(__name__)


class Cache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, payload: Any, ttl: float) -> None: ...


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    expires_at: float


class InMemoryCache:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None or self._clock() > entry.expires_at:
            return None
        return entry.payload

    def put(self, key: str, payload: Any, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(key, payload, now, now + ttl)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisCache:
    """Shared-store backend; payloads must be JSON-serialisable."""

    def __init__(self, client, prefix: str = "lunchbox:cache") -> None:
        self._client = client
        self._prefix = prefix

    def get(self, key: str) -> Any | None:
        try:
            raw = self._client.get(f"{self._prefix}:{key}")
            return json.loads(raw) if raw is not None else None
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None
        except Exception:
            logger.warning("Cache store read failed for %s", key, exc_info=True)
            return None

    def put(self, key: str, payload: Any, ttl: float) -> None:
        try:
            self._client.set(
                f"{self._prefix}:{key}",
                json.dumps(payload, default=str),
                ex=max(1, int(ttl)),
            )
        except Exception:
            logger.warning("Cache store write failed for %s", key, exc_info=True)


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheNamespace:
    name: str
    ttl: float


PLACES = CacheNamespace("places", 7 * 24 * 3600)
TEXT_SEARCH = CacheNamespace("text_search", 24 * 3600)
RECOMMENDATIONS = CacheNamespace("recommendations", 30 * 60)
TRAVEL_TIME = CacheNamespace("travel_time", 15 * 60)


class NamespacedCache:
    """One namespace over a shared backend, with hit/miss counters."""

    def __init__(self, backend: Cache, namespace: CacheNamespace) -> None:
        self.backend = backend
        self.namespace = namespace
        self.hits = 0
        self.misses = 0

    def _key(self, key: str) -> str:
        return f"{self.namespace.name}:{key}"

    def get(self, key: str) -> Any | None:
        payload = self.backend.get(self._key(key))
        if payload is None:
            self.misses += 1
        else:
            self.hits += 1
        return payload

    def put(self, key: str, payload: Any, ttl: float | None = None) -> None:
        self.backend.put(self._key(key), payload, self.namespace.ttl if ttl is None else ttl)

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 1) if total > 0 else 0.0,
        }


# ---------------------------------------------------------------------------
# Key fingerprints
# ---------------------------------------------------------------------------


def _round_coord(value: float, places: int) -> str:
    return f"{round(value, places):.{places}f}"


def fingerprint(data: dict) -> str:
    normalized = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def place_key(place_id: str) -> str:
    return place_id


def text_search_key(lat: float, lng: float, query: str, radius: int) -> str:
    # 3 decimal places is roughly a 111 m bucket
    return f"{_round_coord(lat, 3)},{_round_coord(lng, 3)}:{radius}:{query.lower().strip()}"


def travel_time_key(origin_lat: float, origin_lng: float, place_id: str, mode: str) -> str:
    # 4 decimal places is roughly 11 m
    return f"{_round_coord(origin_lat, 4)},{_round_coord(origin_lng, 4)}:{mode}:{place_id}"


def recommendation_key(
    origin_lat: float,
    origin_lng: float,
    query: dict[str, Any],
) -> str:
    return f"{_round_coord(origin_lat, 3)},{_round_coord(origin_lng, 3)}:{fingerprint(query)}"


# ---------------------------------------------------------------------------
# Process-wide caches
# ---------------------------------------------------------------------------

_backend: Cache | None = None
_caches: dict[str, NamespacedCache] = {}


def _get_backend() -> Cache:
    global _backend
    if _backend is None:
        if DEFAULT_ENGINE_CONFIG.redis_url:
            _backend = RedisCache(redis.Redis.from_url(DEFAULT_ENGINE_CONFIG.redis_url))
        else:
            _backend = InMemoryCache()
    return _backend


def get_cache(namespace: CacheNamespace) -> NamespacedCache:
    cache = _caches.get(namespace.name)
    if cache is None:
        cache = NamespacedCache(_get_backend(), namespace)
        _caches[namespace.name] = cache
    return cache


def get_cache_stats() -> dict:
    backend = _get_backend()
    return {
        "backend": type(backend).__name__,
        "size": len(backend) if isinstance(backend, InMemoryCache) else None,
        "namespaces": {name: cache.stats() for name, cache in _caches.items()},
    }


def clear_cache() -> None:
    global _backend
    _backend = None
    _caches.clear()
