"""
Recommendation decision engine.

Responsibilities:
- Apply the cashless hard filter before the model ever sees a candidate.
- Narrow to fresh drops or trending venues when asked, falling back to the
  full list when nothing qualifies.
- Serve equivalent queries from the recommendations cache and remember
  travel times and free-text candidate lists for repeat searches.
- Compose the rule-encoded prompt, make one model call, and assemble a
  bounded, validated result.
- Degrade to an empty result on any failure after admission.
"""
from __future__ import annotations

import logging
import time

from pydantic import ValidationError as PydanticValidationError

from ..enrichment.menu import enrich_candidates
from ..errors import ParseError
from ..llm import groq_client
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.schemas import parse_json
from ..prompting.composer import compose, compose_loading_logs
from ..prompting.rules import has_cash_only_evidence
from .assembler import assemble
from .cache import (
    RECOMMENDATIONS,
    TEXT_SEARCH,
    TRAVEL_TIME,
    NamespacedCache,
    get_cache,
    recommendation_key,
    text_search_key,
    travel_time_key,
)
from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .models import CandidateVenue, DecisionResponse, HungerVibe, Recommendation, SearchRequest
from .signals import is_fresh_drop, is_trending, walking_minutes

logger = logging.getLogger(__name__)

EMPTY_LOGS_FALLBACK = ["PROCESSING..."]
FAILED_LOGS_FALLBACK = ["OPTIMIZING SEARCH...", "READING MENUS...", "CALCULATING ROUTES..."]


def _query_fingerprint(request: SearchRequest, candidates: list[CandidateVenue]) -> dict:
    return {
        "vibe": request.vibe,
        "price": request.price,
        "no_cash": request.no_cash,
        "dietary": sorted(n.value for n in request.dietary_needs),
        "freestyle": (request.freestyle_prompt or "").strip().lower(),
        "mode": request.travel_mode,
        "fresh": request.newly_opened_only,
        "trending": request.popular_only,
        "candidates": sorted(c.place_id for c in candidates),
    }


def filter_cashless(candidates: list[CandidateVenue]) -> list[CandidateVenue]:
    kept = [c for c in candidates if not has_cash_only_evidence(c)]
    if len(kept) < len(candidates):
        logger.info("Cashless request: excluded %d cash-only candidates", len(candidates) - len(kept))
    return kept


def filter_fresh_drops(candidates: list[CandidateVenue]) -> list[CandidateVenue] | None:
    """Fresh drops only, or None when no candidate qualifies."""
    fresh = [c for c in candidates if is_fresh_drop(c)]
    logger.info("Fresh drops filter: %d/%d places qualify", len(fresh), len(candidates))
    if not fresh:
        logger.warning("No fresh drops found, falling back to all candidates")
        return None
    return fresh


def filter_trending(candidates: list[CandidateVenue]) -> list[CandidateVenue] | None:
    """Trending venues only, or None when no candidate qualifies."""
    trending = [c for c in candidates if is_trending(c)]
    logger.info("Trending filter: %d/%d places qualify", len(trending), len(candidates))
    if not trending:
        logger.warning("No trending places found, falling back to all candidates")
        return None
    return trending


def resolve_candidates(request: SearchRequest) -> list[CandidateVenue]:
    """
    Candidates sent with a free-text search are remembered under that search;
    a later request for the same text at the same spot may omit them.
    """
    freestyle = (request.freestyle_prompt or "").strip()
    if not freestyle:
        return list(request.candidates)

    cache = get_cache(TEXT_SEARCH)
    key = text_search_key(request.origin_lat, request.origin_lng, freestyle, request.search_radius)
    if request.candidates:
        cache.put(key, [c.model_dump() for c in request.candidates])
        return list(request.candidates)

    cached = cache.get(key)
    if not cached:
        return []
    try:
        return [CandidateVenue.model_validate(c) for c in cached]
    except PydanticValidationError:
        logger.warning("Discarding stale text search entry %s", key)
        return []


def resolve_walking_minutes(
    request: SearchRequest, candidates: list[CandidateVenue]
) -> dict[str, int]:
    """Travel times sent with the request are cached; missing ones are looked up."""
    cache = get_cache(TRAVEL_TIME)
    minutes: dict[str, int] = {}
    for candidate in candidates:
        key = travel_time_key(
            request.origin_lat, request.origin_lng, candidate.place_id, request.travel_mode.value
        )
        seconds = request.travel_durations.get(candidate.place_id)
        if seconds is not None:
            cache.put(key, seconds)
        else:
            seconds = cache.get(key)
        if isinstance(seconds, (int, float)):
            minutes[candidate.place_id] = walking_minutes(seconds)
    return minutes


def _cached_decision(cache: NamespacedCache, key: str) -> list[Recommendation] | None:
    cached = cache.get(key)
    if cached is None:
        return None
    try:
        return [Recommendation.model_validate(r) for r in cached]
    except (PydanticValidationError, TypeError):
        logger.warning("Discarding unreadable cached decision %s", key)
        return None


def decide_lunch(
    request: SearchRequest,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
    engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> DecisionResponse:
    start_time = time.time()

    candidates = resolve_candidates(request)
    if request.no_cash:
        candidates = filter_cashless(candidates)

    found_fresh_drops = False
    if request.newly_opened_only and candidates:
        fresh = filter_fresh_drops(candidates)
        if fresh is not None:
            candidates, found_fresh_drops = fresh, True
    if request.popular_only and candidates:
        candidates = filter_trending(candidates) or candidates

    candidates = candidates[: engine_config.max_candidates]

    if not candidates:
        logger.info("No candidates to rank, skipping model call")
        return DecisionResponse(recommendations=[], degraded=True)

    # --- Cache check ---
    cache = get_cache(RECOMMENDATIONS)
    key = recommendation_key(
        request.origin_lat, request.origin_lng, _query_fingerprint(request, candidates)
    )
    recommendations = _cached_decision(cache, key)
    if recommendations is not None:
        return DecisionResponse(
            recommendations=recommendations,
            degraded=len(recommendations) < engine_config.min_results,
            cached=True,
        )

    logger.info(
        "Starting lunch decision candidates=%d vibe=%s price=%s",
        len(candidates), request.vibe, request.price,
    )

    try:
        walking = resolve_walking_minutes(request, candidates)
        if engine_config.enrich_menus:
            candidates = enrich_candidates(candidates)
        prompt = compose(request, candidates, config=engine_config, walking_minutes=walking)
        raw_text = groq_client.invoke(
            prompt.system_instruction,
            prompt.user_payload,
            prompt.output_schema,
            config,
        )
    except Exception:
        logger.warning("Lunch decision failed, returning empty result", exc_info=True)
        return DecisionResponse(recommendations=[], degraded=True)

    assembly = assemble(raw_text, candidates, no_cash=request.no_cash, config=engine_config)
    recommendations = assembly.recommendations
    if found_fresh_drops:
        recommendations = [r.model_copy(update={"is_new_opening": True}) for r in recommendations]

    if recommendations:
        cache.put(key, [r.model_dump() for r in recommendations])

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Decision complete returned=%d dropped=%d degraded=%s elapsed_ms=%s",
        len(recommendations), assembly.dropped, assembly.degraded, elapsed_ms,
    )
    return DecisionResponse(recommendations=recommendations, degraded=assembly.degraded)


def generate_loading_logs(
    vibe: HungerVibe | None,
    address: str,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> list[str]:
    prompt = compose_loading_logs(vibe, address)
    try:
        raw_text = groq_client.invoke(
            prompt.system_instruction,
            prompt.user_payload,
            prompt.output_schema,
            config,
            model=config.light_model,
        )
        if not raw_text or not raw_text.strip():
            return list(EMPTY_LOGS_FALLBACK)
        logs, _errors = prompt.output_schema.decode(parse_json(raw_text))
    except ParseError:
        logger.warning("Loading logs unparseable, using fallbacks")
        return list(FAILED_LOGS_FALLBACK)
    except Exception:
        logger.warning("Log generation failed, using fallbacks", exc_info=True)
        return list(FAILED_LOGS_FALLBACK)

    logs = [log.strip() for log in logs if isinstance(log, str) and log.strip()]
    return logs or list(FAILED_LOGS_FALLBACK)
