from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EngineConfig:
    min_results: int = 3
    target_min_results: int = 5
    max_results: int = 10
    max_candidates: int = 25
    max_reviews_per_venue: int = 5
    max_review_chars: int = 500
    redis_url: str = os.getenv("LUNCHBOX_REDIS_URL", "")
    enrich_menus: bool = os.getenv("LUNCHBOX_ENRICH_MENUS", "false").lower() == "true"


DEFAULT_ENGINE_CONFIG = EngineConfig()
