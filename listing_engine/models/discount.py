"""Discount code models."""

from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field

from listing_engine.models.listing import ListingCategory, ListingDuration, PriceCategory


class DiscountKind(str, Enum):
    """How a code changes the price."""
    PERCENTAGE_OFF = "PERCENTAGE_OFF"
    FREE_OVERRIDE = "FREE_OVERRIDE"


class DiscountCode(BaseModel):
    """Discount code row as stored by the discount authority."""
    code: str = Field(..., description="Code, matched case-insensitively")
    kind: DiscountKind
    percentage: Optional[int] = Field(None, ge=0, le=100)
    price_category: Optional[PriceCategory] = Field(None, description="Category restriction")
    active: bool = True


class InvalidDiscount(BaseModel):
    """Code rejected."""
    valid: Literal[False] = False
    code: str
    reason: str


class PercentageDiscount(BaseModel):
    """Code accepted with a percentage off."""
    valid: Literal[True] = True
    code: str
    percentage: int = Field(..., ge=0, le=100)
    final_amount_cents: int = Field(..., ge=0)
    is_free: bool = False


class FreeDiscount(BaseModel):
    """Code makes the listing free."""
    valid: Literal[True] = True
    code: str
    is_free: Literal[True] = True
    final_amount_cents: Literal[0] = 0


DiscountOutcome = Union[InvalidDiscount, PercentageDiscount, FreeDiscount]


class PriceQuote(BaseModel):
    """Base price, discount outcome and amount due for one selection."""
    category: ListingCategory
    price_category: PriceCategory
    duration: ListingDuration
    base_amount_cents: int
    final_amount_cents: int
    discount: Optional[Union[PercentageDiscount, FreeDiscount]] = None

    @property
    def is_free(self) -> bool:
        return self.final_amount_cents == 0
