"""Listing price table keyed by price category and duration."""

from datetime import timedelta
from typing import Union
from pydantic import BaseModel

from listing_engine.models.listing import ListingCategory, ListingDuration, PriceCategory


class Unavailable(BaseModel):
    """No price exists for the requested combination."""
    price_category: PriceCategory
    duration: ListingDuration
    reason: str = "duration_not_offered"


PriceLookup = Union[int, Unavailable]


REAL_PROPERTY_CATEGORIES = frozenset({
    ListingCategory.FOR_SALE_BY_OWNER,
    ListingCategory.AGENT,
    ListingCategory.RENT,
    ListingCategory.WANTED,
})

OPEN_HOUSE_LIKE_CATEGORIES = frozenset({
    ListingCategory.OPEN_HOUSE,
    ListingCategory.GARAGE_SALE,
})

# Cents. A missing entry means the duration is not sold for that tier.
LISTING_PRICES: dict[PriceCategory, dict[ListingDuration, int]] = {
    PriceCategory.REAL_PROPERTY: {
        ListingDuration.THIRTY_DAY: 5000,
    },
    PriceCategory.OPEN_HOUSE_LIKE: {
        ListingDuration.THREE_DAY: 500,
        ListingDuration.SEVEN_DAY: 1000,
        ListingDuration.THIRTY_DAY: 2500,
    },
    PriceCategory.CLASSIFIED: {
        ListingDuration.THREE_DAY: 1000,
        ListingDuration.SEVEN_DAY: 2500,
        ListingDuration.THIRTY_DAY: 5000,
    },
}

DURATION_DAYS: dict[ListingDuration, int] = {
    ListingDuration.THREE_DAY: 3,
    ListingDuration.SEVEN_DAY: 7,
    ListingDuration.THIRTY_DAY: 30,
}


def classify(category: ListingCategory) -> PriceCategory:
    """Map a listing category to its pricing tier."""
    category = ListingCategory(category)
    if category in REAL_PROPERTY_CATEGORIES:
        return PriceCategory.REAL_PROPERTY
    if category in OPEN_HOUSE_LIKE_CATEGORIES:
        return PriceCategory.OPEN_HOUSE_LIKE
    return PriceCategory.CLASSIFIED


def get_price(price_category: PriceCategory, duration: ListingDuration) -> PriceLookup:
    """
    Price in cents, or Unavailable.

    Callers must reject Unavailable rather than fall back to another duration.
    """
    price_category = PriceCategory(price_category)
    duration = ListingDuration(duration)
    price = LISTING_PRICES[price_category].get(duration)
    if price is None:
        return Unavailable(price_category=price_category, duration=duration)
    return price


def allowed_durations(price_category: PriceCategory) -> list[ListingDuration]:
    """Durations that have a price for the tier, shortest first."""
    offered = LISTING_PRICES[PriceCategory(price_category)]
    return [d for d in ListingDuration if d in offered]


def duration_days(duration: ListingDuration) -> int:
    return DURATION_DAYS[ListingDuration(duration)]


def duration_delta(duration: ListingDuration) -> timedelta:
    return timedelta(days=duration_days(duration))
