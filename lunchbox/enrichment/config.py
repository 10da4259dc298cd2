from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EnrichmentConfig:
    fetch_timeout: float = 10.0
    max_content_chars: int = 15000
    min_content_chars: int = 100
    deadline: float = 12.0
    max_venues: int = 5
    max_workers: int = 4
    max_highlights: int = 5
    user_agent: str = "Mozilla/5.0 (compatible; LunchBot/1.0; +https://lunch-decider.app)"


DEFAULT_ENRICHMENT_CONFIG = EnrichmentConfig()
