from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request

from ..errors import RateLimitExceeded
from .config import DEFAULT_RATE_LIMIT_CONFIG
from .limiter import RateLimiter, build_limiter

logger = logging.getLogger(__name__)

# One table per endpoint, so a caller's quota on one route does not drain another.
_limiters: dict[str, RateLimiter] = {}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_limiter(scope: str) -> RateLimiter:
    limiter = _limiters.get(scope)
    if limiter is None:
        limiter = build_limiter(DEFAULT_RATE_LIMIT_CONFIG, scope)
        _limiters[scope] = limiter
    return limiter


def reset_limiters() -> None:
    _limiters.clear()


def rate_limit(scope: str) -> Callable[[Request], str]:
    """FastAPI dependency factory; returns the admitted caller's identity."""

    def _dependency(request: Request) -> str:
        ip = client_ip(request)
        if DEFAULT_RATE_LIMIT_CONFIG.enabled and not get_limiter(scope).admit(ip):
            logger.warning("[RATE LIMIT] Blocked request from %s", ip)
            raise RateLimitExceeded()
        return ip

    return _dependency
