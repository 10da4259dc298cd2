"""
Review-recency signals.

Reviews carry only a relative age ("2 weeks ago", "3 months ago"), so every
signal here works in approximate months. Unknown or unparseable ages count as
old.
"""
from __future__ import annotations

import math
import re

from .models import CandidateVenue, PlaceReview

UNKNOWN_AGE_MONTHS = 999.0
FRESH_DROP_MAX_MONTHS = 6
# fewer reviews than this qualifies for the fresh-drops pre-filter
FRESH_DROP_FILTER_MAX_REVIEWS = 100
# stricter bound for the per-candidate flag shown to the model
FRESH_DROP_FLAG_MAX_REVIEWS = 80
RECENT_MAX_MONTHS = 1
TRENDING_MIN_RECENT_PERCENT = 10.0

_NUMBER_RE = re.compile(r"(\d+)")


def review_age_months(relative_time: str | None) -> float:
    if not relative_time:
        return UNKNOWN_AGE_MONTHS
    lower = relative_time.lower()
    if "hour" in lower or "day" in lower:
        return 0.0
    if "week" in lower:
        return 0.5
    match = _NUMBER_RE.search(lower)
    count = int(match.group(1)) if match else 1
    if "month" in lower:
        return float(count)
    if "year" in lower:
        return float(count * 12)
    return UNKNOWN_AGE_MONTHS


def newest_first(reviews: list[PlaceReview]) -> list[PlaceReview]:
    return sorted(reviews, key=lambda r: review_age_months(r.relative_time))


def oldest_review_months(candidate: CandidateVenue) -> float:
    if not candidate.reviews_sample:
        return UNKNOWN_AGE_MONTHS
    return max(review_age_months(r.relative_time) for r in candidate.reviews_sample)


def recent_review_percent(candidate: CandidateVenue) -> float:
    reviews = candidate.reviews_sample
    recent = sum(1 for r in reviews if review_age_months(r.relative_time) <= RECENT_MAX_MONTHS)
    sample_size = max(1, min(candidate.rating_count or 1, len(reviews)))
    return recent / sample_size * 100


def is_fresh_drop(candidate: CandidateVenue, max_reviews: int = FRESH_DROP_FILTER_MAX_REVIEWS) -> bool:
    """Few reviews, and even the oldest one is recent."""
    return (candidate.rating_count or 0) < max_reviews and oldest_review_months(candidate) < FRESH_DROP_MAX_MONTHS


def is_trending(candidate: CandidateVenue) -> bool:
    return recent_review_percent(candidate) >= TRENDING_MIN_RECENT_PERCENT


def walking_minutes(duration_s: float | None) -> int | None:
    if duration_s is None:
        return None
    return math.ceil(duration_s / 60)
