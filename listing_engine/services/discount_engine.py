"""Discount code validation for listing fees."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from listing_engine.models.discount import (
    DiscountCode,
    DiscountKind,
    DiscountOutcome,
    FreeDiscount,
    InvalidDiscount,
    PercentageDiscount,
    PriceQuote,
)
from listing_engine.models.listing import ListingCategory, ListingDuration, PriceCategory
from listing_engine.services import pricing_policy
from listing_engine.services.pricing_policy import Unavailable
from listing_engine.services.supabase_client import SupabaseClient
from listing_engine.utils.config import EngineConfig
from listing_engine.utils.errors import InvalidCombinationError, SupabaseError
from listing_engine.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def normalize_code(code: str) -> str:
    """Codes are matched case-insensitively and without surrounding whitespace."""
    return (code or "").strip().upper()


def apply_percentage(base_amount_cents: int, percentage: int) -> int:
    """Amount due after a percentage discount, never below zero."""
    discount = (Decimal(base_amount_cents) * Decimal(percentage) / Decimal(100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return max(0, base_amount_cents - int(discount))


class DiscountAuthority:
    """Remote source of truth for discount codes (Supabase)."""

    async def validate(self, code: str, price_category: PriceCategory, amount_cents: int) -> dict:
        """
        Validate a code remotely.

        Returns {"valid": True, "kind": ..., "percentage": ...} or
        {"valid": False, "reason": ...}. Raises SupabaseError when the
        authority cannot be reached.
        """
        async with SupabaseClient("validate_discount_code") as client:
            try:
                result = client.rpc("validate_discount_code", {
                    "code": code,
                    "price_category": price_category.value,
                    "amount_cents": amount_cents,
                }).execute()
                if result.data:
                    return result.data[0] if isinstance(result.data, list) else result.data
                return {"valid": False, "reason": "unknown_code"}
            except Exception as e:
                # Fall back to a direct table read if the function is not deployed
                try:
                    result = client.table("discount_codes").select("*").eq("code", code).execute()
                except Exception as fallback_error:
                    raise SupabaseError(f"Failed to validate discount code: {e}, fallback: {fallback_error}")

        if not result.data:
            return {"valid": False, "reason": "unknown_code"}
        row = DiscountCode(**result.data[0])
        return evaluate_code_row(row, price_category)


def evaluate_code_row(row: DiscountCode, price_category: PriceCategory) -> dict:
    """Apply activity and category restrictions to a stored code."""
    if not row.active:
        return {"valid": False, "reason": "inactive_code"}
    if row.price_category is not None and row.price_category != price_category:
        return {"valid": False, "reason": "category_restricted"}
    return {"valid": True, "kind": row.kind.value, "percentage": row.percentage}


class DiscountEngine:
    """Resolve a discount code against a base amount."""

    def __init__(
        self,
        authority: Optional[DiscountAuthority] = None,
        universal_free_code: Optional[str] = None,
    ):
        self.authority = authority or DiscountAuthority()
        self.universal_free_code = normalize_code(universal_free_code or EngineConfig.UNIVERSAL_FREE_CODE)

    def is_universal_code(self, code: str) -> bool:
        return bool(code) and normalize_code(code) == self.universal_free_code

    async def validate(
        self,
        code: str,
        price_category: PriceCategory,
        base_amount_cents: int,
    ) -> DiscountOutcome:
        """
        Validate a code for a price category and base amount.

        The universal code is resolved locally and always yields a free
        outcome. Every other code goes to the discount authority.
        """
        normalized = normalize_code(code)
        if not normalized:
            return InvalidDiscount(code=normalized, reason="empty_code")

        if self.is_universal_code(normalized):
            logger.info(
                "Universal free code applied",
                discount_code=normalized,
                price_category=PriceCategory(price_category).value,
                base_amount_cents=base_amount_cents
            )
            return FreeDiscount(code=normalized)

        try:
            response = await self.authority.validate(normalized, PriceCategory(price_category), base_amount_cents)
        except SupabaseError as e:
            logger.warning(
                "Discount authority unavailable",
                discount_code=normalized,
                error=str(e)
            )
            return InvalidDiscount(code=normalized, reason="validation_unavailable")

        if not response or not response.get("valid"):
            reason = (response or {}).get("reason") or "unknown_code"
            logger.info("Discount code rejected", discount_code=normalized, reason=reason)
            return InvalidDiscount(code=normalized, reason=reason)

        kind = response.get("kind") or DiscountKind.PERCENTAGE_OFF.value
        if kind == DiscountKind.FREE_OVERRIDE.value:
            return FreeDiscount(code=normalized)

        raw_percentage = response.get("percentage")
        try:
            percentage = int(raw_percentage)
        except (TypeError, ValueError):
            percentage = None
        if percentage is None or not 0 <= percentage <= 100:
            logger.warning(
                "Discount authority returned an unusable percentage",
                discount_code=normalized,
                percentage=str(raw_percentage)
            )
            return InvalidDiscount(code=normalized, reason="malformed_discount")

        final_amount = apply_percentage(base_amount_cents, percentage)
        if final_amount == 0:
            return FreeDiscount(code=normalized)

        logger.info(
            "Discount code applied",
            discount_code=normalized,
            percentage=percentage,
            base_amount_cents=base_amount_cents,
            final_amount_cents=final_amount
        )
        return PercentageDiscount(
            code=normalized,
            percentage=percentage,
            final_amount_cents=final_amount,
        )

    async def quote(
        self,
        category: ListingCategory,
        duration: ListingDuration,
        discount_code: Optional[str] = None,
    ) -> tuple[PriceQuote, Optional[InvalidDiscount]]:
        """
        Price a selection, optionally with a code.

        An invalid code leaves the quote at the base price and is returned
        alongside it. Raises InvalidCombinationError for unpriced durations.
        """
        category = ListingCategory(category)
        duration = ListingDuration(duration)
        price_category = pricing_policy.classify(category)
        price = pricing_policy.get_price(price_category, duration)
        if isinstance(price, Unavailable):
            raise InvalidCombinationError(category.value, duration.value, price.reason)

        quote = PriceQuote(
            category=category,
            price_category=price_category,
            duration=duration,
            base_amount_cents=price,
            final_amount_cents=price,
        )
        if not discount_code:
            return quote, None

        outcome = await self.validate(discount_code, price_category, price)
        if isinstance(outcome, InvalidDiscount):
            return quote, outcome

        return quote.model_copy(update={
            "final_amount_cents": outcome.final_amount_cents,
            "discount": outcome,
        }), None
