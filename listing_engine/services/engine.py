"""Wiring for the listing engine components."""

from typing import Optional

from listing_engine.services.discount_engine import DiscountAuthority, DiscountEngine
from listing_engine.services.expiration_scheduler import ExpirationScheduler
from listing_engine.services.listing_lifecycle import ListingLifecycleManager
from listing_engine.services.listing_store import ListingStore, SupabaseListingStore
from listing_engine.services.payment_gateway import PaymentGatewayAdapter
from listing_engine.services.payment_reconciliation import PaymentReconciler
from listing_engine.services.square_client import SquareClient
from listing_engine.utils.clock import Clock, utc_now


class ListingEngine:
    """One set of engine components sharing a store and clock."""

    def __init__(
        self,
        store: Optional[ListingStore] = None,
        square_client: Optional[SquareClient] = None,
        authority: Optional[DiscountAuthority] = None,
        clock: Clock = utc_now,
    ):
        self.store = store or SupabaseListingStore()
        self.discount_engine = DiscountEngine(authority)
        self.gateway = PaymentGatewayAdapter(self.store, square_client, clock=clock)
        self.manager = ListingLifecycleManager(self.store, self.discount_engine, self.gateway, clock)
        self.scheduler = ExpirationScheduler(self.manager)
        self.reconciler = PaymentReconciler(self.store, self.gateway, clock)


def build_engine() -> ListingEngine:
    """Engine backed by Supabase and Square, configured from the environment."""
    return ListingEngine()
