from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

from ..llm.schemas import LOADING_LOG_SCHEMA, RECOMMENDATION_SCHEMA, OutputSchema
from ..recommendations.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from ..recommendations.models import CandidateVenue, HungerVibe, SearchRequest
from ..recommendations.signals import (
    FRESH_DROP_FLAG_MAX_REVIEWS,
    is_fresh_drop,
    is_trending,
    newest_first,
    oldest_review_months,
    recent_review_percent,
)
from .rules import DEFAULT_RULES, PromptRule, active_rules

LOADING_LOG_COUNT = 4


@dataclass(frozen=True)
class ComposedPrompt:
    system_instruction: str
    user_payload: str
    output_schema: OutputSchema


# ---------------------------------------------------------------------------
# Prompt text
# ---------------------------------------------------------------------------

_ROLE = """\
ROLE: You are an elite culinary intelligence analyst. You mine restaurant \
reviews for actionable lunch intelligence."""

_CONTEXT = """\
CONTEXT:
Location: "{location}". Adapt your review analysis to the local language as \
well as English (for example German "glutenfrei" or "nur Barzahlung" in Berlin)."""

_OBJECTIVE = """\
PRIMARY OBJECTIVE:
Select {target_min}-{max_results} lunch destinations from the candidates. \
MINIMUM {min_results} recommendations. Only use `place_id` values that appear \
in the candidate list."""

_REVIEW_ANALYSIS = """\
REVIEW ANALYSIS:
- Dish extraction first: find specific dish names that reviews praise, count \
how often each is mentioned, and cross-check the menu summary and menu highlights.
- `recommended_dish` must be a specific item ("Spicy Miso Ramen with Chashu", \
not "Ramen"). Never "house special", "check the menu" or a bare category.
- Quality signals: recurring praise, consistency, recency. Red flags: \
"went downhill", "overpriced", "rude staff", long waits.
- Operational signals: service speed, noise, value for money."""

_REASON_STANDARD = """\
AI_REASON STANDARD:
- Cite concrete review evidence and data points (rating, review volume, dish mentions).
- Say why this venue beat the alternatives.
- BAD: "Great Italian food with nice atmosphere!"
- GOOD: "4.6 from 312 reviews, 8 mention the truffle pasta; recent reviews confirm fast lunch service."
"""

_OUTPUT = """\
OUTPUT: Return only JSON matching the schema, ordered best first."""

_SEPARATOR = "=" * 60


def _rule_block(index: int, rule: PromptRule, request: SearchRequest) -> str:
    return f"{index}. {rule.title}:\n{rule.describe(request)}"


def build_system_instruction(
    request: SearchRequest,
    rules: Iterable[PromptRule] = DEFAULT_RULES,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> str:
    location = request.address or f"{request.origin_lat:.4f}, {request.origin_lng:.4f}"
    blocks = [
        _rule_block(i, rule, request)
        for i, rule in enumerate(active_rules(request, rules), start=1)
    ]
    sections = [
        _ROLE,
        _CONTEXT.format(location=location),
        _OBJECTIVE.format(
            target_min=config.target_min_results,
            max_results=config.max_results,
            min_results=config.min_results,
        ),
        _SEPARATOR,
        _REVIEW_ANALYSIS,
        _SEPARATOR,
        "SELECTION CRITERIA:\n\n" + "\n\n".join(blocks),
        _SEPARATOR,
        _REASON_STANDARD,
        _OUTPUT,
    ]
    return "\n\n".join(sections)


def _candidate_payload(
    candidate: CandidateVenue,
    config: EngineConfig,
    walking_minutes: int | None = None,
) -> dict[str, Any]:
    oldest = oldest_review_months(candidate)
    reviews = [
        {
            "text": review.text[: config.max_review_chars],
            "rating": review.rating,
            "time": review.relative_time,
        }
        for review in newest_first([r for r in candidate.reviews_sample if r.text])[: config.max_reviews_per_venue]
    ]
    payload: dict[str, Any] = {
        "place_id": candidate.place_id,
        "name": candidate.name,
        "types": candidate.types,
        "rating": candidate.rating,
        "user_ratings_total": candidate.rating_count,
        "price_level": candidate.price_level,
        "menu_summary": candidate.summary or "No official menu summary available.",
        "attributes": {
            "payment_options": candidate.payment_signals.model_dump(exclude_none=True),
            **candidate.dietary_signals.model_dump(exclude_none=True),
        },
        "reviews": reviews,
        "walking_minutes": walking_minutes,
        "is_fresh_drop": is_fresh_drop(candidate, FRESH_DROP_FLAG_MAX_REVIEWS),
        "oldest_review_months": oldest if oldest < 100 else None,
        "is_trending": is_trending(candidate),
        "recent_review_percent": round(recent_review_percent(candidate)),
    }
    if candidate.menu_highlights:
        payload["menu_highlights"] = candidate.menu_highlights
    return payload


def build_user_payload(
    request: SearchRequest,
    candidates: list[CandidateVenue],
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    walking_minutes: dict[str, int] | None = None,
) -> str:
    walking_minutes = walking_minutes or {}
    lines = [
        "## Search",
        f"- Location: {request.address or 'coordinates only'} "
        f"({request.origin_lat:.4f}, {request.origin_lng:.4f})",
        f"- Vibe: {request.vibe.value if request.vibe else 'CUSTOM / USER DEFINED'}",
        f"- Freestyle request: \"{request.freestyle_prompt}\"" if request.freestyle_prompt else "- Freestyle request: None",
        f"- Budget tier: {request.price.value if request.price else 'ANY / UNCONSTRAINED'}",
        f"- Requires cashless: {str(request.no_cash).lower()}",
        f"- Dietary needs: [{', '.join(n.value for n in request.dietary_needs)}]",
        f"- Fresh drops only: {str(request.newly_opened_only).lower()}",
        f"- Trending only: {str(request.popular_only).lower()}",
        "",
        "## Candidates",
        json.dumps(
            [_candidate_payload(c, config, walking_minutes.get(c.place_id)) for c in candidates],
            ensure_ascii=False,
        ),
    ]
    return "\n".join(lines)


def compose(
    request: SearchRequest,
    candidates: list[CandidateVenue],
    rules: Iterable[PromptRule] = DEFAULT_RULES,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    walking_minutes: dict[str, int] | None = None,
) -> ComposedPrompt:
    return ComposedPrompt(
        system_instruction=build_system_instruction(request, rules, config),
        user_payload=build_user_payload(request, candidates, config, walking_minutes),
        output_schema=RECOMMENDATION_SCHEMA,
    )


# ---------------------------------------------------------------------------
# Loading logs
# ---------------------------------------------------------------------------

LOADING_LOGS_PROMPT = """\
You are the system voice of a culinary logistics engine. Generate \
{count} short, concrete, technical-sounding log messages that narrate the \
search for lunch, specific to this request.

User's location context: "{address}"
User's desired vibe: "{vibe}"

Follow a logical search sequence. Be cool, efficient and technical; no \
generic hacking tropes.

Example for vibe "Grab & Go" in "Kreuzberg, Berlin, Germany":
1. "PARSING KREUZBERG SECTOR GRID..."
2. "ISOLATING HIGH-THROUGHPUT VENDORS..."
3. "CROSS-REFERENCING DÖNER & CURRYWURST DATASTREAMS..."
4. "PLOTTING OPTIMAL FOOT-TRAFFIC VECTORS..."

Return ONLY a JSON array of exactly {count} strings."""


def compose_loading_logs(vibe: HungerVibe | None, address: str) -> ComposedPrompt:
    return ComposedPrompt(
        system_instruction="",
        user_payload=LOADING_LOGS_PROMPT.format(
            count=LOADING_LOG_COUNT,
            address=address,
            vibe=vibe.value if vibe else "Custom/User Defined",
        ),
        output_schema=LOADING_LOG_SCHEMA,
    )
