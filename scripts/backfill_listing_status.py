"""
Backfill lifecycle status on legacy listing rows

Older rows were written before listings carried a lifecycle status. This
assigns one from the publication fields that are present:
- no expiration_date and no payment_ref -> DRAFT
- payment_ref but no expiration_date -> PENDING_PAYMENT
- expiration_date -> ACTIVE / EXPIRING_SOON / EXPIRED by days remaining

Run with: python scripts/backfill_listing_status.py [--dry-run]
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from listing_engine.models.listing import ListingDuration, ListingStatus
from listing_engine.services import pricing_policy
from listing_engine.services.expiration_scheduler import days_remaining
from listing_engine.services.supabase_client import get_supabase_client
from listing_engine.utils.clock import ensure_aware, utc_now
from listing_engine.utils.config import EngineConfig
from listing_engine.utils.logging import get_structured_logger, setup_logging

logger = get_structured_logger(__name__)

VALID_STATUSES = {s.value for s in ListingStatus}


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def legacy_status_updates(row: dict, now: datetime) -> Optional[dict]:
    """
    Column updates for one row, or None when its status is already valid.
    """
    if row.get("status") in VALID_STATUSES:
        return None

    expiration_date = _parse_datetime(row.get("expiration_date"))
    if expiration_date is None:
        if row.get("payment_ref"):
            return {"status": ListingStatus.PENDING_PAYMENT.value}
        return {"status": ListingStatus.DRAFT.value, "expiration_date": None, "payment_ref": None}

    remaining = days_remaining(expiration_date, now)
    if remaining <= 0:
        status = ListingStatus.EXPIRED
    elif remaining <= EngineConfig.EXPIRING_SOON_DAYS:
        status = ListingStatus.EXPIRING_SOON
    else:
        status = ListingStatus.ACTIVE

    updates = {"status": status.value}
    if not row.get("published_at"):
        duration = ListingDuration(row.get("duration") or ListingDuration.THIRTY_DAY.value)
        published_at = ensure_aware(expiration_date) - pricing_policy.duration_delta(duration)
        updates["published_at"] = published_at.isoformat()
    return updates


def backfill(dry_run: bool = False, now: Optional[datetime] = None) -> int:
    """Update legacy rows. Returns the number of rows changed (or that would be)."""
    now = now or utc_now()
    client = get_supabase_client()
    rows = client.table("listings").select("*").execute().data or []

    changed = 0
    for row in rows:
        updates = legacy_status_updates(row, now)
        if updates is None:
            continue
        changed += 1
        logger.info(
            "Backfilling listing status",
            listing_id=row.get("listing_id"),
            previous_status=row.get("status"),
            new_status=updates["status"],
            dry_run=dry_run
        )
        if not dry_run:
            client.table("listings").update(updates).eq("listing_id", row["listing_id"]).execute()

    logger.info("Listing status backfill completed", rows_checked=len(rows), rows_changed=changed, dry_run=dry_run)
    return changed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill lifecycle status on legacy listings")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing them")
    args = parser.parse_args(argv)

    setup_logging()
    backfill(dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
