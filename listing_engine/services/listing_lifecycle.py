"""
Listing lifecycle manager

Owns every listing status change: drafting, publishing through the
payment gateway, activation and the time-driven transitions applied by the
expiration scheduler.
"""

from datetime import datetime
from typing import Any, Optional

from ulid import ULID

from listing_engine.models.discount import PriceQuote
from listing_engine.models.listing import (
    Listing,
    ListingCategory,
    ListingDraftInput,
    ListingDuration,
    ListingStatus,
    PublishResult,
)
from listing_engine.models.payment import FreePaymentResult, PaymentVerification
from listing_engine.services import pricing_policy
from listing_engine.services.discount_engine import DiscountEngine, normalize_code
from listing_engine.services.listing_store import ListingStore
from listing_engine.services.payment_gateway import PaymentGatewayAdapter
from listing_engine.utils.clock import Clock, utc_now
from listing_engine.utils.errors import (
    InvalidDiscountCodeError,
    InvalidTransitionError,
    ListingNotFoundError,
    PaymentFailedError,
    PaymentPendingError,
)
from listing_engine.utils.logging import get_structured_logger, mask_identifier, sanitize_listing_text

logger = get_structured_logger(__name__)

PUBLISHABLE_STATUSES = (ListingStatus.DRAFT, ListingStatus.PENDING_PAYMENT)
REPUBLISHABLE_STATUSES = (ListingStatus.ACTIVE, ListingStatus.EXPIRING_SOON, ListingStatus.EXPIRED)

# Forward moves the scheduler may request
TIME_TRANSITIONS = {
    ListingStatus.ACTIVE: {ListingStatus.EXPIRING_SOON, ListingStatus.EXPIRED},
    ListingStatus.EXPIRING_SOON: {ListingStatus.EXPIRED},
}


def generate_listing_id() -> str:
    """Generate a text-based listing ID (ULID format)."""
    return str(ULID())


class ListingLifecycleManager:
    """Drives listings from Draft through payment to Active, expiry and purge."""

    def __init__(
        self,
        store: ListingStore,
        discount_engine: Optional[DiscountEngine] = None,
        gateway: Optional[PaymentGatewayAdapter] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.discount_engine = discount_engine or DiscountEngine()
        self.gateway = gateway or PaymentGatewayAdapter(store, clock=clock)
        self.clock = clock

    async def get_listing(self, listing_id: str) -> Listing:
        listing = await self.store.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(f"Listing not found: {listing_id}")
        return listing

    async def create_draft(self, draft: ListingDraftInput) -> Listing:
        """Store a new Draft listing. No payment is created."""
        now = self.clock()
        listing = Listing(
            listing_id=generate_listing_id(),
            owner_id=draft.owner_id,
            title=draft.title,
            description=draft.description,
            category=draft.category,
            duration=draft.duration,
            status=ListingStatus.DRAFT,
            created_at=now,
            updated_at=now,
            contact_info=draft.contact_info,
            metadata=draft.metadata,
        )
        created = await self.store.create_listing(listing)

        logger.info(
            "Listing draft created",
            listing_id=created.listing_id,
            owner_id=mask_identifier(created.owner_id),
            category=created.category.value,
            duration=created.duration.value,
            title=sanitize_listing_text(created.title)
        )
        return created

    async def quote_price(
        self,
        category: ListingCategory,
        duration: ListingDuration,
        discount_code: Optional[str] = None,
    ) -> PriceQuote:
        """Price a selection. Raises for unpriced durations and rejected codes."""
        quote, invalid = await self.discount_engine.quote(category, duration, discount_code)
        if invalid is not None:
            raise InvalidDiscountCodeError(invalid.code, invalid.reason)
        return quote

    async def submit_for_publish(
        self,
        listing_id: str,
        category: Optional[ListingCategory] = None,
        duration: Optional[ListingDuration] = None,
        discount_code: Optional[str] = None,
        redirect_url: Optional[str] = None,
    ) -> PublishResult:
        """
        Price the selection, create its payment and move the listing on.

        Free selections activate immediately. Paid selections leave the
        listing in PendingPayment with a payable URL for the owner. Category,
        duration and code default to the listing's saved selection.
        """
        listing = await self.get_listing(listing_id)
        if listing.status not in PUBLISHABLE_STATUSES:
            raise InvalidTransitionError(listing_id, listing.status.value, "submit_for_publish")

        category = ListingCategory(category or listing.category)
        duration = ListingDuration(duration or listing.duration)
        code = discount_code if discount_code is not None else listing.pending_discount_code

        # Price and code are settled before anything is sent to the gateway
        quote = await self.quote_price(category, duration, code)
        applied_code = quote.discount.code if quote.discount else None

        payment = await self.gateway.create_payment(
            amount_cents=quote.final_amount_cents,
            category=category,
            duration=duration,
            redirect_url=redirect_url,
            listing_id=listing_id,
            discount_code=applied_code,
            buyer_email=listing.contact_info.email,
        )

        selection = {
            "category": category,
            "duration": duration,
            "payment_ref": payment.payment_id,
            "discount_code_applied": applied_code,
            "pending_discount_code": None,
        }

        previous_payment_ref = listing.payment_ref

        if isinstance(payment, FreePaymentResult):
            activated = await self._activate(
                listing, PUBLISHABLE_STATUSES, selection, expected_payment_ref=previous_payment_ref
            )
            if previous_payment_ref:
                await self.gateway.cancel_payment(previous_payment_ref)
            logger.info(
                "Listing published without payment",
                listing_id=listing_id,
                payment_id=payment.payment_id,
                discount_code=applied_code,
                expiration_date=activated.expiration_date.isoformat()
            )
            return PublishResult(
                requires_payment=False,
                listing=activated,
                payment_id=payment.payment_id,
                amount_cents=0,
            )

        pending = await self.store.compare_and_set_listing(
            listing_id,
            PUBLISHABLE_STATUSES,
            {**selection, "status": ListingStatus.PENDING_PAYMENT, "updated_at": self.clock()},
            expected_payment_ref=previous_payment_ref,
        )
        if pending is None:
            await self.gateway.cancel_payment(payment.payment_id)
            current = await self.get_listing(listing_id)
            logger.warning(
                "Listing changed while its payment was created",
                listing_id=listing_id,
                payment_id=payment.payment_id,
                current_payment_id=current.payment_ref
            )
            raise InvalidTransitionError(listing_id, current.status.value, "submit_for_publish")

        if previous_payment_ref and previous_payment_ref != payment.payment_id:
            # Resubmission replaces the earlier checkout
            await self.gateway.cancel_payment(previous_payment_ref)

        logger.info(
            "Listing awaiting payment",
            listing_id=listing_id,
            payment_id=payment.payment_id,
            amount_cents=quote.final_amount_cents,
            base_amount_cents=quote.base_amount_cents,
            discount_code=applied_code,
            replaced_payment_id=previous_payment_ref
        )
        return PublishResult(
            requires_payment=True,
            listing=pending,
            payment_id=payment.payment_id,
            payable_url=payment.payable_url,
            amount_cents=quote.final_amount_cents,
        )

    async def confirm_payment(self, payment_id: str) -> Listing:
        """
        Activate the listing a payment belongs to.

        Repeated calls for a listing that is already published under this
        payment return it unchanged without verifying again.
        """
        payment = await self.gateway.get_payment(payment_id)
        listing = await self.get_listing(payment.listing_id)

        if listing.payment_ref != payment_id:
            logger.warning(
                "Payment does not belong to the listing's current publish attempt",
                listing_id=listing.listing_id,
                payment_id=payment_id,
                current_payment_id=listing.payment_ref
            )
            raise InvalidTransitionError(listing.listing_id, listing.status.value, "confirm_payment")

        if listing.status.is_published:
            logger.debug("Listing already confirmed", listing_id=listing.listing_id, payment_id=payment_id)
            return listing

        if listing.status != ListingStatus.PENDING_PAYMENT:
            raise InvalidTransitionError(listing.listing_id, listing.status.value, "confirm_payment")

        verification = await self.gateway.verify_payment(payment_id)

        if verification == PaymentVerification.PENDING:
            raise PaymentPendingError(payment_id)
        if verification == PaymentVerification.FAILED:
            current = await self.gateway.get_payment(payment_id)
            logger.warning(
                "Payment failed; listing stays pending",
                listing_id=listing.listing_id,
                payment_id=payment_id,
                payment_status=current.status.value
            )
            raise PaymentFailedError(payment_id, current.status.value)

        if verification == PaymentVerification.PENDING_BUT_ACCEPTABLE:
            await self.gateway.mark_assumed_completed(payment_id)
            logger.warning(
                "Activating listing on unconfirmed payment",
                listing_id=listing.listing_id,
                payment_id=payment_id
            )

        return await self._activate(
            listing,
            (ListingStatus.PENDING_PAYMENT,),
            {},
            expected_payment_ref=payment_id,
        )

    async def _activate(
        self,
        listing: Listing,
        expected_statuses: tuple,
        updates: dict[str, Any],
        expected_payment_ref: Optional[str],
    ) -> Listing:
        """CAS the listing to Active with its expiration set from the chosen duration."""
        now = self.clock()
        duration = ListingDuration(updates.get("duration") or listing.duration)
        payment_ref = updates.get("payment_ref") or listing.payment_ref

        activated = await self.store.compare_and_set_listing(
            listing.listing_id,
            expected_statuses,
            {
                **updates,
                "status": ListingStatus.ACTIVE,
                "published_at": now,
                "expiration_date": now + pricing_policy.duration_delta(duration),
                "updated_at": now,
            },
            expected_payment_ref=expected_payment_ref,
        )
        if activated is not None:
            logger.info(
                "Listing activated",
                listing_id=listing.listing_id,
                payment_id=payment_ref,
                duration=duration.value,
                publish_cycle=activated.publish_cycle,
                expiration_date=activated.expiration_date.isoformat()
            )
            return activated

        # Lost the race: another request may have activated it already
        current = await self.get_listing(listing.listing_id)
        if current.status.is_published and current.payment_ref == payment_ref:
            logger.debug(
                "Listing activated by a concurrent request",
                listing_id=listing.listing_id,
                payment_id=payment_ref
            )
            return current
        raise InvalidTransitionError(listing.listing_id, current.status.value, "activate")

    async def save_as_draft(
        self,
        listing_id: str,
        category: Optional[ListingCategory] = None,
        duration: Optional[ListingDuration] = None,
        discount_code: Optional[str] = None,
    ) -> Listing:
        """Keep the listing in Draft, remembering the owner's pending selection."""
        listing = await self.get_listing(listing_id)
        if listing.status != ListingStatus.DRAFT:
            raise InvalidTransitionError(listing_id, listing.status.value, "save_as_draft")

        updates: dict[str, Any] = {"updated_at": self.clock()}
        if category is not None:
            updates["category"] = ListingCategory(category)
        if duration is not None:
            updates["duration"] = ListingDuration(duration)
        if discount_code is not None:
            updates["pending_discount_code"] = normalize_code(discount_code) or None

        saved = await self.store.compare_and_set_listing(listing_id, (ListingStatus.DRAFT,), updates)
        if saved is None:
            current = await self.get_listing(listing_id)
            raise InvalidTransitionError(listing_id, current.status.value, "save_as_draft")

        logger.info(
            "Listing saved as draft",
            listing_id=listing_id,
            category=saved.category.value,
            duration=saved.duration.value,
            pending_discount_code=saved.pending_discount_code
        )
        return saved

    async def republish(self, listing_id: str) -> Listing:
        """Admin: start a new publish cycle for a published listing."""
        listing = await self.get_listing(listing_id)
        if listing.status not in REPUBLISHABLE_STATUSES:
            raise InvalidTransitionError(listing_id, listing.status.value, "republish")

        drafted = await self.store.compare_and_set_listing(
            listing_id,
            (listing.status,),
            {
                "status": ListingStatus.DRAFT,
                "published_at": None,
                "expiration_date": None,
                "payment_ref": None,
                "discount_code_applied": None,
                "publish_cycle": listing.publish_cycle + 1,
                "updated_at": self.clock(),
            },
            expected_publish_cycle=listing.publish_cycle,
        )
        if drafted is None:
            current = await self.get_listing(listing_id)
            raise InvalidTransitionError(listing_id, current.status.value, "republish")

        logger.info(
            "Listing returned to draft for republish",
            listing_id=listing_id,
            from_status=listing.status.value,
            publish_cycle=drafted.publish_cycle
        )
        return drafted

    async def cancel_listing(self, listing_id: str) -> Listing:
        """Delete a listing at any stage and cancel its open payment."""
        listing = await self.get_listing(listing_id)
        if listing.status == ListingStatus.DELETED:
            return listing

        now = self.clock()
        deleted = await self.store.compare_and_set_listing(
            listing_id,
            (listing.status,),
            {"status": ListingStatus.DELETED, "deleted_at": now, "updated_at": now},
        )
        if deleted is None:
            current = await self.get_listing(listing_id)
            if current.status == ListingStatus.DELETED:
                return current
            raise InvalidTransitionError(listing_id, current.status.value, "cancel_listing")

        if listing.status == ListingStatus.PENDING_PAYMENT and listing.payment_ref:
            await self.gateway.cancel_payment(listing.payment_ref)
        await self.store.release_listing_storage(listing_id)

        logger.info(
            "Listing canceled",
            listing_id=listing_id,
            from_status=listing.status.value,
            payment_id=listing.payment_ref
        )
        return deleted

    async def apply_time_transition(
        self,
        listing: Listing,
        target_status: ListingStatus,
        now: Optional[datetime] = None,
    ) -> Optional[Listing]:
        """
        Move a published listing forward in time (ExpiringSoon or Expired).

        Returns None when the stored row is no longer in ``listing``'s status
        and publish cycle.
        """
        if target_status not in TIME_TRANSITIONS.get(listing.status, set()):
            raise InvalidTransitionError(listing.listing_id, listing.status.value, f"to_{target_status.value}")

        updated = await self.store.compare_and_set_listing(
            listing.listing_id,
            (listing.status,),
            {"status": target_status, "updated_at": now or self.clock()},
            expected_publish_cycle=listing.publish_cycle,
        )
        if updated is not None:
            logger.info(
                "Listing status advanced",
                listing_id=listing.listing_id,
                from_status=listing.status.value,
                to_status=target_status.value,
                expiration_date=listing.expiration_date.isoformat() if listing.expiration_date else None
            )
        return updated

    async def purge_listing(self, listing: Listing, now: Optional[datetime] = None) -> Optional[Listing]:
        """Delete an Expired listing and release its storage. None on a lost race."""
        if listing.status != ListingStatus.EXPIRED:
            raise InvalidTransitionError(listing.listing_id, listing.status.value, "purge")

        now = now or self.clock()
        deleted = await self.store.compare_and_set_listing(
            listing.listing_id,
            (ListingStatus.EXPIRED,),
            {"status": ListingStatus.DELETED, "deleted_at": now, "updated_at": now},
            expected_publish_cycle=listing.publish_cycle,
        )
        if deleted is None:
            return None

        await self.store.release_listing_storage(listing.listing_id)
        logger.info(
            "Expired listing purged",
            listing_id=listing.listing_id,
            expiration_date=listing.expiration_date.isoformat() if listing.expiration_date else None
        )
        return deleted
