"""Expiration sweep - time-driven listing transitions."""

import asyncio
import math
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from listing_engine.models.listing import Listing, ListingStatus
from listing_engine.services.listing_lifecycle import ListingLifecycleManager
from listing_engine.services.listing_store import ListingStore
from listing_engine.utils.clock import ensure_aware
from listing_engine.utils.config import EngineConfig
from listing_engine.utils.logging import get_correlation_id, get_structured_logger, log_timing

logger = get_structured_logger(__name__)

SECONDS_PER_DAY = 86400

SWEPT_STATUSES = (ListingStatus.ACTIVE, ListingStatus.EXPIRING_SOON, ListingStatus.EXPIRED)


class SweepResult(BaseModel):
    """Counters for one sweep."""
    checked: int = 0
    expiring_soon: int = 0
    expired: int = 0
    deleted: int = 0
    conflicts: int = 0
    errors: int = 0
    expiring_soon_ids: list[str] = Field(
        default_factory=list,
        description="Listings that entered ExpiringSoon during this sweep"
    )


def days_remaining(expiration_date: datetime, now: datetime) -> int:
    """Whole days left until expiration, rounded up."""
    delta = ensure_aware(expiration_date) - ensure_aware(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


class ExpirationScheduler:
    """Applies expiry and purge transitions through the lifecycle manager."""

    def __init__(
        self,
        manager: ListingLifecycleManager,
        store: Optional[ListingStore] = None,
        expiring_soon_days: Optional[int] = None,
        grace_days: Optional[int] = None,
    ):
        self.manager = manager
        self.store = store or manager.store
        self.expiring_soon_days = expiring_soon_days if expiring_soon_days is not None else EngineConfig.EXPIRING_SOON_DAYS
        self.grace_days = grace_days if grace_days is not None else EngineConfig.EXPIRED_GRACE_DAYS

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Run one pass over published listings.

        A listing may move more than one step in a single pass (for example
        Active straight to Deleted after a long outage). A status that changed
        underneath the sweep is counted as a conflict and left alone.
        """
        now = ensure_aware(now or self.manager.clock())
        correlation_id = get_correlation_id()
        result = SweepResult()

        with log_timing("expiration_sweep", logger=logger):
            listings = await self.store.list_listings_by_status(SWEPT_STATUSES)

            for listing in listings:
                result.checked += 1
                try:
                    await self._advance(listing, now, result)
                except Exception as e:
                    result.errors += 1
                    logger.error(
                        "Error sweeping listing",
                        correlation_id=correlation_id,
                        listing_id=listing.listing_id,
                        listing_status=listing.status.value,
                        error=str(e),
                        exc_info=True
                    )

        if result.expiring_soon_ids:
            # Owners are notified from this event
            logger.info(
                "Listings expiring soon",
                correlation_id=correlation_id,
                listing_ids=result.expiring_soon_ids,
                count=len(result.expiring_soon_ids)
            )

        logger.info(
            "Expiration sweep completed",
            correlation_id=correlation_id,
            sweep_time=now.isoformat(),
            **result.model_dump(exclude={"expiring_soon_ids"})
        )
        return result

    async def _advance(self, listing: Listing, now: datetime, result: SweepResult) -> None:
        if listing.expiration_date is None:
            logger.warning(
                "Published listing has no expiration date",
                listing_id=listing.listing_id,
                listing_status=listing.status.value
            )
            return

        remaining = days_remaining(listing.expiration_date, now)
        current: Optional[Listing] = listing

        if current.status == ListingStatus.ACTIVE and 0 < remaining <= self.expiring_soon_days:
            current = await self.manager.apply_time_transition(current, ListingStatus.EXPIRING_SOON, now)
            if current is None:
                result.conflicts += 1
                return
            result.expiring_soon += 1
            result.expiring_soon_ids.append(listing.listing_id)

        if current.status in (ListingStatus.ACTIVE, ListingStatus.EXPIRING_SOON) and remaining <= 0:
            current = await self.manager.apply_time_transition(current, ListingStatus.EXPIRED, now)
            if current is None:
                result.conflicts += 1
                return
            result.expired += 1

        purge_after = ensure_aware(listing.expiration_date) + timedelta(days=self.grace_days)
        if current.status == ListingStatus.EXPIRED and now > purge_after:
            deleted = await self.manager.purge_listing(current, now)
            if deleted is None:
                result.conflicts += 1
                return
            result.deleted += 1

    async def run_periodically(
        self,
        interval_seconds: Optional[float] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Sweep every ``interval_seconds`` until ``stop_event`` is set."""
        interval = interval_seconds if interval_seconds is not None else EngineConfig.SWEEP_INTERVAL_SECONDS
        stop_event = stop_event or asyncio.Event()

        logger.info("Expiration scheduler started", interval_seconds=interval)
        while not stop_event.is_set():
            try:
                await self.sweep()
            except Exception as e:
                logger.error("Expiration sweep failed", error=str(e), exc_info=True)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Expiration scheduler stopped")
