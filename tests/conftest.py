"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import AsyncMock, Mock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("SQUARE_ENVIRONMENT", "sandbox")
os.environ.setdefault("SQUARE_ACCESS_TOKEN", "test-square-token")
os.environ.setdefault("SQUARE_LOCATION_ID", "LOC123")

from listing_engine.services.discount_engine import DiscountEngine
from listing_engine.services.engine import ListingEngine
from listing_engine.services.expiration_scheduler import ExpirationScheduler
from listing_engine.services.listing_lifecycle import ListingLifecycleManager
from listing_engine.services.payment_gateway import PaymentGatewayAdapter
from listing_engine.services.payment_reconciliation import PaymentReconciler
from listing_engine.services.square_client import SquareClient
from tests.fixtures import square_responses
from tests.utils.factories import BASE_TIME, create_discount_code
from tests.utils.helpers import FrozenClock
from tests.utils.stores import InMemoryListingStore, StaticDiscountAuthority


@pytest.fixture
def now():
    return BASE_TIME


@pytest.fixture
def clock(now):
    return FrozenClock(now)


@pytest.fixture
def store():
    return InMemoryListingStore()


@pytest.fixture
def discount_authority():
    """Authority knowing SAVE20 (20%), HALF (50%, classified only), COMP (free override), OLD (inactive)."""
    from listing_engine.models.discount import DiscountKind
    from listing_engine.models.listing import PriceCategory

    return StaticDiscountAuthority([
        create_discount_code("SAVE20", 20),
        create_discount_code("HALF", 50, price_category=PriceCategory.CLASSIFIED),
        create_discount_code("COMP", None, kind=DiscountKind.FREE_OVERRIDE),
        create_discount_code("OLD", 10, active=False),
    ])


@pytest.fixture
def discount_engine(discount_authority):
    return DiscountEngine(authority=discount_authority, universal_free_code="FREE100")


@pytest.fixture
def square_client():
    """SquareClient double: links are created, no checkout has started."""
    client = Mock(spec=SquareClient)
    client.create_payment_link = AsyncMock(return_value={
        "id": square_responses.LINK_ID,
        "url": square_responses.LINK_URL,
        "order_id": square_responses.ORDER_ID,
    })
    client.retrieve_payment_status = AsyncMock(return_value=square_responses.payment_status(state="OPEN"))
    return client


@pytest.fixture
def gateway(store, square_client, clock):
    return PaymentGatewayAdapter(store, square_client, verify_timeout=1, clock=clock)


@pytest.fixture
def manager(store, discount_engine, gateway, clock):
    return ListingLifecycleManager(store, discount_engine, gateway, clock)


@pytest.fixture
def scheduler(manager, store):
    return ExpirationScheduler(manager, store, expiring_soon_days=7, grace_days=30)


@pytest.fixture
def reconciler(store, gateway, clock):
    return PaymentReconciler(store, gateway, clock)


@pytest.fixture
def engine(store, square_client, discount_authority, clock):
    """Fully wired engine over the in-memory store and Square double."""
    return ListingEngine(store=store, square_client=square_client, authority=discount_authority, clock=clock)


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture
def mock_vercel_request():
    """Mock Vercel cron function request."""
    return {
        "method": "GET",
        "path": "/api/cron/expire_listings",
        "headers": {},
        "body": "",
        "query": {}
    }
