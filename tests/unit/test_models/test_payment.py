"""Tests for payment and discount models."""

import pytest
from pydantic import ValidationError

from listing_engine.models.discount import (
    DiscountCode,
    DiscountKind,
    FreeDiscount,
    PercentageDiscount,
    PriceQuote,
)
from listing_engine.models.listing import ListingCategory, ListingDuration, PriceCategory
from listing_engine.models.payment import (
    FreePaymentResult,
    LinkPaymentResult,
    PaymentStatus,
    PaymentVerification,
    ReconciliationStatus,
)
from tests.utils.factories import create_payment_record


@pytest.mark.unit
def test_payment_record_defaults():
    record = create_payment_record(status=PaymentStatus.CREATED)

    assert record.currency == "USD"
    assert record.is_free is False
    assert record.assumed_completed is False
    assert record.reconciliation_status == ReconciliationStatus.NOT_REQUIRED


@pytest.mark.unit
def test_payment_record_rejects_negative_amount():
    with pytest.raises(ValidationError):
        create_payment_record(amount_cents=-1)


@pytest.mark.unit
def test_terminal_payment_statuses():
    assert PaymentStatus.COMPLETED.is_terminal
    assert PaymentStatus.CANCELED.is_terminal
    assert not PaymentStatus.CREATED.is_terminal
    assert not PaymentStatus.PENDING.is_terminal
    assert not PaymentStatus.ERROR.is_terminal


@pytest.mark.unit
def test_verification_allows_activation():
    assert PaymentVerification.COMPLETED.allows_activation
    assert PaymentVerification.PENDING_BUT_ACCEPTABLE.allows_activation
    assert not PaymentVerification.PENDING.allows_activation
    assert not PaymentVerification.FAILED.allows_activation


@pytest.mark.unit
def test_payment_results_are_tagged():
    free = FreePaymentResult(payment_id="p1")
    link = LinkPaymentResult(payment_id="p2", payable_url="https://square.link/u/x")

    assert free.kind == "free" and free.is_free is True
    assert link.kind == "link" and link.is_free is False


@pytest.mark.unit
def test_discount_code_percentage_bounds():
    with pytest.raises(ValidationError):
        DiscountCode(code="TOO_MUCH", kind=DiscountKind.PERCENTAGE_OFF, percentage=120)


@pytest.mark.unit
def test_price_quote_is_free():
    quote = PriceQuote(
        category=ListingCategory.CLASSIFIED,
        price_category=PriceCategory.CLASSIFIED,
        duration=ListingDuration.SEVEN_DAY,
        base_amount_cents=2500,
        final_amount_cents=0,
        discount=FreeDiscount(code="FREE100"),
    )
    assert quote.is_free

    paid = quote.model_copy(update={
        "final_amount_cents": 2000,
        "discount": PercentageDiscount(code="SAVE20", percentage=20, final_amount_cents=2000),
    })
    assert not paid.is_free
