from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import ParseError
from ..llm.schemas import RECOMMENDATION_SCHEMA, parse_json
from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .models import CandidateVenue, Recommendation

logger = logging.getLogger(__name__)


@dataclass
class Assembly:
    recommendations: list[Recommendation] = field(default_factory=list)
    dropped: int = 0
    degraded: bool = True


def assemble(
    raw_text: str | None,
    candidates: list[CandidateVenue],
    *,
    no_cash: bool = False,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Assembly:
    """
    Turn raw model text into a bounded, validated recommendation list.

    Never raises. Unparseable text yields an empty, degraded assembly.
    Entries naming an unknown place, missing a required field, repeating a
    place, or (with ``no_cash``) flagged cash-only are dropped. Model order is
    kept; the list is capped at ``config.max_results``. Fewer than
    ``config.min_results`` survivors is reported as degraded, not as an error.
    """
    try:
        data = parse_json(raw_text)
        items, errors = RECOMMENDATION_SCHEMA.decode(data)
    except ParseError as exc:
        logger.warning("Discarding model output: %s", exc.details)
        return Assembly()

    by_id = {c.place_id: c for c in candidates}
    dropped = len(errors)
    seen: set[str] = set()
    recommendations: list[Recommendation] = []

    for item in items:
        candidate = by_id.get(item["place_id"])
        if candidate is None:
            logger.info("Dropping recommendation for unknown place %s", item["place_id"])
            dropped += 1
            continue
        if candidate.place_id in seen:
            dropped += 1
            continue

        is_cash_only = item["is_cash_only"] or candidate.has_explicit_cash_only_flag
        if no_cash and is_cash_only:
            logger.info("Dropping cash-only place %s for cashless request", candidate.place_id)
            dropped += 1
            continue

        seen.add(candidate.place_id)
        recommendations.append(Recommendation(
            place_id=candidate.place_id,
            ai_reason=item["ai_reason"],
            recommended_dish=item["recommended_dish"],
            is_cash_only=is_cash_only,
            is_new_opening=item.get("is_new_opening"),
        ))

    if len(recommendations) > config.max_results:
        recommendations = recommendations[: config.max_results]

    degraded = len(recommendations) < config.min_results
    if degraded:
        logger.warning(
            "Under-count result: %d valid recommendations (minimum %d)",
            len(recommendations), config.min_results,
        )
    return Assembly(recommendations=recommendations, dropped=dropped, degraded=degraded)
