"""Tests for the legacy listing status backfill."""

from datetime import timedelta

import pytest

from scripts.backfill_listing_status import legacy_status_updates
from tests.utils.factories import BASE_TIME


@pytest.mark.unit
def test_valid_status_left_alone():
    assert legacy_status_updates({"status": "ACTIVE"}, BASE_TIME) is None


@pytest.mark.unit
def test_row_without_publication_becomes_draft():
    updates = legacy_status_updates({"status": None, "expiration_date": None, "payment_ref": None}, BASE_TIME)

    assert updates == {"status": "DRAFT", "expiration_date": None, "payment_ref": None}


@pytest.mark.unit
def test_row_with_payment_only_is_pending():
    updates = legacy_status_updates({"status": "", "payment_ref": "sqp_123"}, BASE_TIME)

    assert updates == {"status": "PENDING_PAYMENT"}


@pytest.mark.unit
@pytest.mark.parametrize("offset,status", [
    (timedelta(days=20), "ACTIVE"),
    (timedelta(days=5), "EXPIRING_SOON"),
    (-timedelta(days=1), "EXPIRED"),
])
def test_row_with_expiration_gets_time_status(offset, status):
    row = {
        "status": "active",
        "duration": "30_day",
        "expiration_date": (BASE_TIME + offset).isoformat().replace("+00:00", "Z"),
        "published_at": None,
    }

    updates = legacy_status_updates(row, BASE_TIME)

    assert updates["status"] == status
    assert updates["published_at"] == (BASE_TIME + offset - timedelta(days=30)).isoformat()


@pytest.mark.unit
def test_existing_published_at_kept():
    row = {
        "status": None,
        "expiration_date": (BASE_TIME + timedelta(days=20)).isoformat(),
        "published_at": (BASE_TIME - timedelta(days=10)).isoformat(),
    }

    updates = legacy_status_updates(row, BASE_TIME)

    assert updates == {"status": "ACTIVE"}
