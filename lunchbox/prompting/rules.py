"""
Selection protocols.

Each protocol is a small pure rule: ``applies(request)`` says whether it is
active for this search and ``describe(request)`` renders its instruction
block. The composer concatenates the active blocks in order, so every rule
can be tested on its own.

The local cash-only evidence check lives here too, because the payment
protocol is enforced twice: once in the prompt and once before the model is
called.
"""
from __future__ import annotations

import re
from typing import Iterable

from ..recommendations.models import CandidateVenue, DietaryNeed, PriceTier, SearchRequest

HIDDEN_GEM_MIN_RATING = 4.3
HIDDEN_GEM_REVIEW_RANGE = (50, 750)
NEW_OPENING_MAX_REVIEWS = 50

# tier -> (target low, target high) on the 0-4 price_level scale
PRICE_LEVEL_RANGES: dict[PriceTier, tuple[int, int]] = {
    PriceTier.bootstrapped: (1, 1),
    PriceTier.series_a: (2, 3),
    PriceTier.company_card: (3, 4),
}

CASH_ONLY_PHRASES: dict[str, tuple[str, ...]] = {
    "en": ("cash only", "cash-only", "no cards", "no card payment", "bring cash"),
    "de": ("nur barzahlung", "nur bar", "keine kartenzahlung", "nur cash", "bargeld only"),
    "es": ("solo efectivo", "sólo efectivo", "no aceptan tarjeta"),
    "it": ("solo contanti", "non accettano carte"),
    "fr": ("espèces uniquement", "paiement en espèces seulement", "pas de carte"),
}

DIETARY_TERMS: dict[DietaryNeed, tuple[str, ...]] = {
    DietaryNeed.gluten_free: ("gluten-free", "glutenfrei", "celiac", "coeliac", "GF options"),
    DietaryNeed.vegan: ("vegan", "plant-based", "pflanzlich", "vegane optionen"),
    DietaryNeed.vegetarian: ("vegetarian", "vegetarisch", "veggie"),
}

# whole phrases only, and not when negated ("not cash only anymore")
_CASH_ONLY_RE = re.compile(
    r"(?<!not )(?<!no longer )(?<!nicht mehr )\b(?:"
    + "|".join(re.escape(p) for phrases in CASH_ONLY_PHRASES.values() for p in phrases)
    + r")\b",
    re.IGNORECASE,
)


def has_cash_only_evidence(candidate: CandidateVenue) -> bool:
    """Explicit payment flag or any review mentioning cash-only payment."""
    if candidate.has_explicit_cash_only_flag:
        return True
    return any(_CASH_ONLY_RE.search(review.text or "") for review in candidate.reviews_sample)


def _quote(terms: Iterable[str]) -> str:
    return ", ".join(f'"{t}"' for t in terms)


class PromptRule:
    title: str = ""

    def applies(self, request: SearchRequest) -> bool:
        return True

    def describe(self, request: SearchRequest) -> str:
        raise NotImplementedError


class HiddenGemRule(PromptRule):
    title = "HIDDEN GEM BIAS"

    def describe(self, request: SearchRequest) -> str:
        low, high = HIDDEN_GEM_REVIEW_RANGE
        return (
            f"- Sweet spot: rating > {HIDDEN_GEM_MIN_RATING} with {low}-{high} reviews.\n"
            "- Favor independents over chains; de-prioritize tourist traps.\n"
            f"- Venues with more than {high} reviews are acceptable only when no "
            "better-fitting gem exists."
        )


class DiversityRule(PromptRule):
    title = "DIVERSITY MANDATE"

    def describe(self, request: SearchRequest) -> str:
        return (
            "- The returned set must span different cuisines or categories.\n"
            "- Fail: all Italian. Success: ramen + French bistro + taqueria.\n"
            "- If the candidates cannot support a diverse set, return the best "
            "available set and say so in `ai_reason` rather than returning nothing."
        )


class BudgetRule(PromptRule):
    title = "BUDGET MATRIX"

    def describe(self, request: SearchRequest) -> str:
        if request.price is None:
            return (
                "- OPEN / UNCONSTRAINED: no budget was given.\n"
                "- Select from ANY price range, from cheap eats to fine dining, "
                "judged purely on food quality, atmosphere and relevance."
            )

        low, high = PRICE_LEVEL_RANGES[request.price]
        lines = [f"- STRICT tier [{request.price.value}]: target `price_level` {low}-{high}."]
        if request.price is PriceTier.bootstrapped:
            lines.append(
                "- `price_level` 2 only with strong \"great value\", \"cheap\" or "
                "\"large portions\" review signals. Never above 2."
            )
        elif request.price is PriceTier.series_a:
            lines.append(
                "- Avoid `price_level` 1 unless it is an acclaimed hidden gem with exceptional reviews."
            )
        else:
            lines.append(
                "- Prioritize quality, atmosphere and experience over cost. `price_level` 2 "
                "only for a known gastronomic hotspot that happens to be affordable."
            )
        return "\n".join(lines)


class PaymentRule(PromptRule):
    title = "PAYMENT PROTOCOL"

    def describe(self, request: SearchRequest) -> str:
        local = "; ".join(
            f"{lang}: {_quote(phrases)}" for lang, phrases in CASH_ONLY_PHRASES.items() if lang != "en"
        )
        lines = [
            "- Scan `payment_options` AND review text for cash-only signals.",
            f"- English signals: {_quote(CASH_ONLY_PHRASES['en'])}.",
            f"- Local-language signals ({local}) count equally.",
            "- `accepts_credit_cards: false` or `accepts_cash_only: true` means "
            "`is_cash_only: true`. One cash-only review mention is enough.",
        ]
        if request.no_cash:
            lines.append("- The user REQUIRES cashless payment: DISCARD every cash-only candidate entirely.")
        else:
            lines.append("- Cash is acceptable: keep cash-only venues but set `is_cash_only: true`.")
        return "\n".join(lines)


class DietaryRule(PromptRule):
    title = "DIETARY PROTOCOL"

    def applies(self, request: SearchRequest) -> bool:
        return bool(request.dietary_needs)

    def describe(self, request: SearchRequest) -> str:
        needs = ", ".join(n.value for n in request.dietary_needs)
        lines = [
            f"- Required: {needs}. Check reviews, menu summaries and attributes in English and the local language."
        ]
        for need in request.dietary_needs:
            lines.append(f"- {need.value} signals: {_quote(DIETARY_TERMS[need])}.")
        lines.extend([
            "- Explicit accommodation evidence is a STRONG positive signal.",
            "- Reviews reporting poor allergy handling or cross-contamination for these "
            "needs are a STRONG negative signal.",
            "- If nothing matches strongly, still pick the best options and note in "
            "`ai_reason` that the user should verify with the venue.",
        ])
        return "\n".join(lines)


class FreestyleOverrideRule(PromptRule):
    title = "FREESTYLE OVERRIDE"

    def applies(self, request: SearchRequest) -> bool:
        return bool(request.freestyle_prompt and request.freestyle_prompt.strip())

    def describe(self, request: SearchRequest) -> str:
        return (
            f'- The user asked: "{request.freestyle_prompt.strip()}".\n'
            "- This request wins over the vibe and the soft preferences above when they conflict.\n"
            "- It never lifts the payment or dietary exclusions."
        )


class DiscoveryModeRule(PromptRule):
    title = "DISCOVERY MODE"

    def applies(self, request: SearchRequest) -> bool:
        return request.newly_opened_only or request.popular_only

    def describe(self, request: SearchRequest) -> str:
        lines = []
        if request.newly_opened_only:
            lines.append(
                "- MODE: Fresh drops only. Prioritize `is_fresh_drop: true` and set "
                "`is_new_opening: true` for them."
            )
        if request.popular_only:
            lines.append(
                "- MODE: Trending only. Prioritize `is_trending: true` and a high "
                "`recent_review_percent`; mention the buzz in `ai_reason`."
            )
        return "\n".join(lines)


class NewOpeningRule(PromptRule):
    title = "FRESH DROP DETECTION"

    def describe(self, request: SearchRequest) -> str:
        return (
            f"- High rating with fewer than {NEW_OPENING_MAX_REVIEWS} reviews, or review "
            "language like \"just opened\" / \"new place\", means `is_new_opening: true`.\n"
            "- Boost these venues and mention the opening in `ai_reason`."
        )


DEFAULT_RULES: tuple[PromptRule, ...] = (
    HiddenGemRule(),
    DiversityRule(),
    PaymentRule(),
    BudgetRule(),
    NewOpeningRule(),
    DiscoveryModeRule(),
    FreestyleOverrideRule(),
    DietaryRule(),
)


def active_rules(
    request: SearchRequest, rules: Iterable[PromptRule] = DEFAULT_RULES
) -> list[PromptRule]:
    return [rule for rule in rules if rule.applies(request)]
