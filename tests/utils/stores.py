"""In-memory stand-ins for the Supabase-backed ports."""

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from listing_engine.models.discount import DiscountCode
from listing_engine.models.listing import Listing, ListingStatus, PriceCategory
from listing_engine.models.payment import PaymentRecord, PaymentStatus, ReconciliationStatus
from listing_engine.services.discount_engine import DiscountAuthority, evaluate_code_row
from listing_engine.services.listing_store import ANY_PAYMENT_REF, ListingStore
from listing_engine.utils.errors import SupabaseError


class InMemoryListingStore(ListingStore):
    """ListingStore keeping rows in dicts. Rows are re-validated on every update."""

    def __init__(self):
        self.listings: dict[str, Listing] = {}
        self.payments: dict[str, PaymentRecord] = {}
        self.released: list[str] = []
        self.fail_payment_writes = False

    async def create_listing(self, listing: Listing) -> Listing:
        self.listings[listing.listing_id] = listing.model_copy(deep=True)
        return listing.model_copy(deep=True)

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        listing = self.listings.get(listing_id)
        return listing.model_copy(deep=True) if listing else None

    async def list_listings_by_status(self, statuses: Iterable[ListingStatus]) -> list[Listing]:
        wanted = set(statuses)
        matches = [l for l in self.listings.values() if l.status in wanted]
        matches.sort(key=lambda l: (l.expiration_date is None, l.expiration_date or datetime.min))
        return [l.model_copy(deep=True) for l in matches]

    async def compare_and_set_listing(
        self,
        listing_id: str,
        expected_statuses: Iterable[ListingStatus],
        updates: dict[str, Any],
        expected_payment_ref: Union[Optional[str], object] = ANY_PAYMENT_REF,
        expected_publish_cycle: Optional[int] = None,
    ) -> Optional[Listing]:
        current = self.listings.get(listing_id)
        if current is None or current.status not in set(expected_statuses):
            return None
        if expected_payment_ref is not ANY_PAYMENT_REF and current.payment_ref != expected_payment_ref:
            return None
        if expected_publish_cycle is not None and current.publish_cycle != expected_publish_cycle:
            return None
        updated = Listing(**{**current.model_dump(), **updates})
        self.listings[listing_id] = updated
        return updated.model_copy(deep=True)

    async def release_listing_storage(self, listing_id: str) -> None:
        self.released.append(listing_id)

    async def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        if self.fail_payment_writes:
            raise SupabaseError("Failed to create payment record: connection refused")
        self.payments[payment.payment_id] = payment.model_copy(deep=True)
        return payment.model_copy(deep=True)

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        payment = self.payments.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    async def compare_and_set_payment(
        self,
        payment_id: str,
        expected_statuses: Iterable[PaymentStatus],
        updates: dict[str, Any],
    ) -> Optional[PaymentRecord]:
        current = self.payments.get(payment_id)
        if current is None or current.status not in set(expected_statuses):
            return None
        updated = PaymentRecord(**{**current.model_dump(), **updates})
        self.payments[payment_id] = updated
        return updated.model_copy(deep=True)

    async def update_payment_reconciliation(
        self,
        payment_id: str,
        reconciliation_status: ReconciliationStatus,
        updated_at: datetime,
    ) -> Optional[PaymentRecord]:
        current = self.payments.get(payment_id)
        if current is None:
            return None
        updated = current.model_copy(update={
            "reconciliation_status": reconciliation_status,
            "updated_at": updated_at,
        })
        self.payments[payment_id] = updated
        return updated.model_copy(deep=True)

    async def list_payments_for_reconciliation(self, limit: int = 50) -> list[PaymentRecord]:
        pending = [
            p for p in self.payments.values()
            if p.assumed_completed and p.reconciliation_status == ReconciliationStatus.UNRESOLVED
        ]
        pending.sort(key=lambda p: p.created_at)
        return [p.model_copy(deep=True) for p in pending[:limit]]


class StaticDiscountAuthority(DiscountAuthority):
    """Discount authority answering from a fixed set of codes."""

    def __init__(self, codes: Optional[Iterable[DiscountCode]] = None, available: bool = True):
        self.codes = {c.code.upper(): c for c in (codes or [])}
        self.available = available
        self.calls: list[str] = []

    async def validate(self, code: str, price_category: PriceCategory, amount_cents: int) -> dict:
        self.calls.append(code)
        if not self.available:
            raise SupabaseError("Failed to validate discount code: service unavailable")
        row = self.codes.get(code.upper())
        if row is None:
            return {"valid": False, "reason": "unknown_code"}
        return evaluate_code_row(row, price_category)
