from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

CASH_WARNING_MESSAGE = "Note: This location may be cash-only."
MAX_REQUEST_CANDIDATES = 100


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HungerVibe(str, Enum):
    grab_and_go = "Grab & Go"
    light_and_clean = "Light & Clean"
    hearty_and_rich = "Hearty & Rich"
    spicy_and_bold = "Spicy & Bold"
    view_and_vibe = "View & Vibe"
    authentic_and_classic = "Authentic & Classic"


class PriceTier(str, Enum):
    bootstrapped = "Bootstrapped"
    series_a = "Series A"
    company_card = "Company Card"


class DietaryNeed(str, Enum):
    gluten_free = "Gluten-Free"
    vegan = "Vegan"
    vegetarian = "Vegetarian"


class TravelMode(str, Enum):
    walk = "WALK"
    delivery = "DELIVERY"


# ── Candidate input (supplied by the place-search collaborator) ──────────


class PlaceReview(_CamelModel):
    text: str = ""
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    relative_time: str | None = None


class PaymentSignals(_CamelModel):
    accepts_credit_cards: bool | None = None
    accepts_cash_only: bool | None = None
    accepts_nfc: bool | None = None


class DietarySignals(_CamelModel):
    serves_vegetarian_food: bool | None = None
    serves_vegan_food: bool | None = None


class CandidateVenue(_CamelModel):
    place_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    rating_count: int | None = Field(default=None, ge=0)
    price_level: int | None = Field(default=None, ge=0, le=4)
    types: list[str] = Field(default_factory=list)
    summary: str | None = None
    reviews_sample: list[PlaceReview] = Field(default_factory=list)
    payment_signals: PaymentSignals = Field(default_factory=PaymentSignals)
    dietary_signals: DietarySignals = Field(default_factory=DietarySignals)
    website: str | None = None
    menu_highlights: list[str] = Field(default_factory=list)

    @property
    def has_explicit_cash_only_flag(self) -> bool:
        signals = self.payment_signals
        return bool(signals.accepts_cash_only) or signals.accepts_credit_cards is False


class SearchRequest(_CamelModel):
    origin_lat: float = Field(..., ge=-90.0, le=90.0)
    origin_lng: float = Field(..., ge=-180.0, le=180.0)
    address: str | None = Field(default=None, description="Human-readable locality for language context")
    vibe: HungerVibe | None = None
    price: PriceTier | None = None
    no_cash: bool = False
    dietary_needs: list[DietaryNeed] = Field(default_factory=list)
    freestyle_prompt: str | None = Field(default=None, max_length=500)
    travel_mode: TravelMode = TravelMode.walk
    newly_opened_only: bool = False
    popular_only: bool = False
    search_radius: int = Field(default=1000, ge=1, le=50000)
    travel_durations: dict[str, float] = Field(
        default_factory=dict,
        description="Travel time in seconds from the origin, keyed by placeId",
    )
    candidates: list[CandidateVenue] = Field(default_factory=list, max_length=MAX_REQUEST_CANDIDATES)


# ── Output ───────────────────────────────────────────────────────────────


class Recommendation(_CamelModel):
    place_id: str
    ai_reason: str
    recommended_dish: str
    is_cash_only: bool
    is_new_opening: bool | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cash_warning_message(self) -> str | None:
        return CASH_WARNING_MESSAGE if self.is_cash_only else None


class DecisionResponse(_CamelModel):
    recommendations: list[Recommendation]
    degraded: bool = False
    cached: bool = False


class LoadingLogsRequest(_CamelModel):
    vibe: HungerVibe | None = None
    address: str = Field(..., min_length=1)


class LoadingLogsResponse(BaseModel):
    logs: list[str]
