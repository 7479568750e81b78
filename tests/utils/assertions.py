"""Custom assertion helpers."""

from typing import Any, Dict
import json

from listing_engine.models.listing import Listing, ListingStatus
from listing_engine.services import pricing_policy


def assert_draft_state(listing: Listing) -> None:
    """Assert that a listing carries no publication state."""
    assert listing.status == ListingStatus.DRAFT
    assert listing.expiration_date is None
    assert listing.payment_ref is None
    assert listing.published_at is None


def assert_active_listing(listing: Listing) -> None:
    """Assert that a listing is active with an expiration set from its duration."""
    assert listing.status == ListingStatus.ACTIVE
    assert listing.payment_ref is not None
    assert listing.published_at is not None
    assert listing.expiration_date == listing.published_at + pricing_policy.duration_delta(listing.duration)


def assert_valid_response(response: Dict[str, Any], expected_status: int = 200) -> None:
    """Assert that a Vercel function response is valid."""
    assert 'statusCode' in response
    assert response['statusCode'] == expected_status
    assert 'headers' in response
    assert 'body' in response

    # Try to parse body as JSON if content-type is JSON
    if 'application/json' in response.get('headers', {}).get('Content-Type', ''):
        try:
            json.loads(response['body'])
        except json.JSONDecodeError:
            assert False, "Response body is not valid JSON"
