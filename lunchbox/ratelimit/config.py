from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    window_s: float = 60.0
    capacity: int = 20
    redis_url: str = os.getenv("LUNCHBOX_REDIS_URL", "")
    namespace: str = os.getenv("LUNCHBOX_RATE_LIMIT_NAMESPACE", "lunchbox:rl")
    enabled: bool = os.getenv("LUNCHBOX_RATE_LIMIT_ENABLED", "true").lower() == "true"


DEFAULT_RATE_LIMIT_CONFIG = RateLimitConfig()
