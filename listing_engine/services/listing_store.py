"""Persistence boundary for listings and payment records."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel

from listing_engine.models.listing import Listing, ListingStatus
from listing_engine.models.payment import PaymentRecord, PaymentStatus, ReconciliationStatus
from listing_engine.services.supabase_client import SupabaseClient
from listing_engine.utils.errors import SupabaseError

# Passed as expected_payment_ref to skip the payment_ref check; None matches NULL
ANY_PAYMENT_REF = object()


def serialize_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """Convert update values into JSON-compatible column values."""
    serialized = {}
    for key, value in updates.items():
        if isinstance(value, datetime):
            serialized[key] = value.isoformat()
        elif isinstance(value, Enum):
            serialized[key] = value.value
        elif isinstance(value, BaseModel):
            serialized[key] = value.model_dump(mode="json")
        else:
            serialized[key] = value
    return serialized


def _status_values(statuses: Iterable[Enum]) -> list[str]:
    return [s.value for s in statuses]


class ListingStore(ABC):
    """
    Storage port used by the lifecycle engine.

    Status changes go through the compare-and-set methods: the update only
    applies when the stored status is one of ``expected_statuses``. Listing
    updates can also pin ``payment_ref`` (``None`` meaning no payment yet) and
    ``publish_cycle``. ``None`` is returned when the row does not match.
    """

    @abstractmethod
    async def create_listing(self, listing: Listing) -> Listing:
        ...

    @abstractmethod
    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        ...

    @abstractmethod
    async def list_listings_by_status(self, statuses: Iterable[ListingStatus]) -> list[Listing]:
        ...

    @abstractmethod
    async def compare_and_set_listing(
        self,
        listing_id: str,
        expected_statuses: Iterable[ListingStatus],
        updates: dict[str, Any],
        expected_payment_ref: Union[Optional[str], object] = ANY_PAYMENT_REF,
        expected_publish_cycle: Optional[int] = None,
    ) -> Optional[Listing]:
        ...

    @abstractmethod
    async def release_listing_storage(self, listing_id: str) -> None:
        """Remove media and other owned rows of a purged listing."""
        ...

    @abstractmethod
    async def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        ...

    @abstractmethod
    async def compare_and_set_payment(
        self,
        payment_id: str,
        expected_statuses: Iterable[PaymentStatus],
        updates: dict[str, Any],
    ) -> Optional[PaymentRecord]:
        ...

    @abstractmethod
    async def update_payment_reconciliation(
        self,
        payment_id: str,
        reconciliation_status: ReconciliationStatus,
        updated_at: datetime,
    ) -> Optional[PaymentRecord]:
        ...

    @abstractmethod
    async def list_payments_for_reconciliation(self, limit: int = 50) -> list[PaymentRecord]:
        ...


class SupabaseListingStore(ListingStore):
    """ListingStore backed by the ``listings`` and ``listing_payments`` tables."""

    LISTINGS_TABLE = "listings"
    PAYMENTS_TABLE = "listing_payments"
    MEDIA_TABLE = "listing_media"

    async def create_listing(self, listing: Listing) -> Listing:
        async with SupabaseClient("create_listing") as client:
            try:
                result = client.table(self.LISTINGS_TABLE).insert(listing.model_dump(mode="json")).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to create listing: {e}")
            if result.data and len(result.data) > 0:
                return Listing(**result.data[0])
            raise SupabaseError("Failed to create listing: no data returned")

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        async with SupabaseClient("get_listing") as client:
            try:
                result = client.table(self.LISTINGS_TABLE).select("*").eq("listing_id", listing_id).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to get listing: {e}")
            return Listing(**result.data[0]) if result.data else None

    async def list_listings_by_status(self, statuses: Iterable[ListingStatus]) -> list[Listing]:
        async with SupabaseClient("list_listings_by_status") as client:
            try:
                result = (
                    client.table(self.LISTINGS_TABLE)
                    .select("*")
                    .in_("status", _status_values(statuses))
                    .order("expiration_date")
                    .execute()
                )
            except Exception as e:
                raise SupabaseError(f"Failed to list listings: {e}")
            return [Listing(**row) for row in (result.data or [])]

    async def compare_and_set_listing(
        self,
        listing_id: str,
        expected_statuses: Iterable[ListingStatus],
        updates: dict[str, Any],
        expected_payment_ref: Union[Optional[str], object] = ANY_PAYMENT_REF,
        expected_publish_cycle: Optional[int] = None,
    ) -> Optional[Listing]:
        async with SupabaseClient("compare_and_set_listing") as client:
            try:
                # Single conditional UPDATE; PostgREST applies the filter atomically
                query = (
                    client.table(self.LISTINGS_TABLE)
                    .update(serialize_updates(updates))
                    .eq("listing_id", listing_id)
                    .in_("status", _status_values(expected_statuses))
                )
                if expected_payment_ref is None:
                    query = query.is_("payment_ref", "null")
                elif expected_payment_ref is not ANY_PAYMENT_REF:
                    query = query.eq("payment_ref", expected_payment_ref)
                if expected_publish_cycle is not None:
                    query = query.eq("publish_cycle", expected_publish_cycle)
                result = query.execute()
            except Exception as e:
                raise SupabaseError(f"Failed to update listing {listing_id}: {e}")
            return Listing(**result.data[0]) if result.data else None

    async def release_listing_storage(self, listing_id: str) -> None:
        async with SupabaseClient("release_listing_storage") as client:
            try:
                client.table(self.MEDIA_TABLE).delete().eq("listing_id", listing_id).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to release storage for listing {listing_id}: {e}")

    async def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        async with SupabaseClient("create_payment") as client:
            try:
                result = client.table(self.PAYMENTS_TABLE).insert(payment.model_dump(mode="json")).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to create payment record: {e}")
            if result.data and len(result.data) > 0:
                return PaymentRecord(**result.data[0])
            raise SupabaseError("Failed to create payment record: no data returned")

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        async with SupabaseClient("get_payment") as client:
            try:
                result = client.table(self.PAYMENTS_TABLE).select("*").eq("payment_id", payment_id).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to get payment record: {e}")
            return PaymentRecord(**result.data[0]) if result.data else None

    async def compare_and_set_payment(
        self,
        payment_id: str,
        expected_statuses: Iterable[PaymentStatus],
        updates: dict[str, Any],
    ) -> Optional[PaymentRecord]:
        async with SupabaseClient("compare_and_set_payment") as client:
            try:
                result = (
                    client.table(self.PAYMENTS_TABLE)
                    .update(serialize_updates(updates))
                    .eq("payment_id", payment_id)
                    .in_("status", _status_values(expected_statuses))
                    .execute()
                )
            except Exception as e:
                raise SupabaseError(f"Failed to update payment record {payment_id}: {e}")
            return PaymentRecord(**result.data[0]) if result.data else None

    async def update_payment_reconciliation(
        self,
        payment_id: str,
        reconciliation_status: ReconciliationStatus,
        updated_at: datetime,
    ) -> Optional[PaymentRecord]:
        async with SupabaseClient("update_payment_reconciliation") as client:
            try:
                result = (
                    client.table(self.PAYMENTS_TABLE)
                    .update(serialize_updates({
                        "reconciliation_status": reconciliation_status,
                        "updated_at": updated_at,
                    }))
                    .eq("payment_id", payment_id)
                    .execute()
                )
            except Exception as e:
                raise SupabaseError(f"Failed to update reconciliation for {payment_id}: {e}")
            return PaymentRecord(**result.data[0]) if result.data else None

    async def list_payments_for_reconciliation(self, limit: int = 50) -> list[PaymentRecord]:
        async with SupabaseClient("list_payments_for_reconciliation") as client:
            try:
                result = (
                    client.table(self.PAYMENTS_TABLE)
                    .select("*")
                    .eq("assumed_completed", True)
                    .eq("reconciliation_status", ReconciliationStatus.UNRESOLVED.value)
                    .order("created_at")
                    .limit(limit)
                    .execute()
                )
            except Exception as e:
                raise SupabaseError(f"Failed to list payments for reconciliation: {e}")
            return [PaymentRecord(**row) for row in (result.data or [])]
