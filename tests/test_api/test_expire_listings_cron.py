"""Tests for the expiration cron endpoint."""

import json
from datetime import timedelta

import pytest
from unittest.mock import patch

from api.cron.expire_listings import handler
from listing_engine.models.listing import ListingDuration, ListingStatus
from listing_engine.models.payment import PaymentStatus, ReconciliationStatus
from tests.fixtures import square_responses
from tests.utils.assertions import assert_valid_response
from tests.utils.factories import BASE_TIME, create_listing, create_payment_record


@pytest.mark.unit
def test_cron_runs_sweep_and_reconciliation(engine, store, clock, square_client, mock_vercel_request):
    expiring = create_listing(status=ListingStatus.ACTIVE, duration=ListingDuration.THREE_DAY)
    store.listings[expiring.listing_id] = expiring
    assumed = create_payment_record(
        status=PaymentStatus.COMPLETED,
        assumed_completed=True,
        reconciliation_status=ReconciliationStatus.UNRESOLVED,
    )
    store.payments[assumed.payment_id] = assumed
    square_client.retrieve_payment_status.return_value = square_responses.payment_status("COMPLETED")
    clock.now = BASE_TIME + timedelta(days=1)

    with patch("api.cron.expire_listings.build_engine", return_value=engine):
        response = handler(mock_vercel_request)

    assert_valid_response(response, 200)
    body = json.loads(response["body"])
    assert body["sweep"]["expiring_soon"] == 1
    assert body["sweep"]["expiring_soon_ids"] == [expiring.listing_id]
    assert body["reconciliation"]["confirmed"] == 1
    assert store.listings[expiring.listing_id].status == ListingStatus.EXPIRING_SOON


@pytest.mark.unit
def test_cron_failure_returns_500(mock_vercel_request):
    with patch("api.cron.expire_listings.build_engine", side_effect=RuntimeError("no database")):
        response = handler(mock_vercel_request)

    assert_valid_response(response, 500)
    assert "no database" in json.loads(response["body"])["error"]
