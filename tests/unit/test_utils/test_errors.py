"""Tests for the engine error hierarchy and HTTP mapping."""

import pytest

from listing_engine.utils.errors import (
    InvalidCombinationError,
    InvalidDiscountCodeError,
    InvalidTransitionError,
    ListingEngineError,
    ListingNotFoundError,
    PaymentCreationFailedError,
    PaymentFailedError,
    PaymentNotFoundError,
    PaymentPendingError,
    SquareAPIError,
    SquareNotFoundError,
    SupabaseError,
    error_payload,
    http_status_for,
)


@pytest.mark.unit
@pytest.mark.parametrize("error,status", [
    (InvalidCombinationError("Rent", "3_day"), 400),
    (InvalidDiscountCodeError("NOPE"), 400),
    (InvalidTransitionError("L1", "ACTIVE", "save_as_draft"), 400),
    (PaymentFailedError("P1", "CANCELED"), 402),
    (PaymentPendingError("P1"), 202),
    (ListingNotFoundError("missing"), 404),
    (PaymentNotFoundError("missing"), 404),
    (PaymentCreationFailedError("square down"), 502),
    (SupabaseError("db down"), 500),
    (RuntimeError("unexpected"), 500),
])
def test_http_status_for(error, status):
    assert http_status_for(error) == status


@pytest.mark.unit
def test_all_errors_share_base():
    for error_cls in (SupabaseError, SquareAPIError, SquareNotFoundError, PaymentCreationFailedError):
        assert issubclass(error_cls, ListingEngineError)
    assert issubclass(SquareNotFoundError, SquareAPIError)


@pytest.mark.unit
def test_invalid_combination_default_reason():
    error = InvalidCombinationError("Rent", "3_day")

    assert error.reason == "duration_not_offered"
    assert "Rent" in str(error)


@pytest.mark.unit
def test_error_payload_includes_reason_and_payment():
    code_payload = error_payload(InvalidDiscountCodeError("OLD", "inactive_code"))
    payment_payload = error_payload(PaymentPendingError("P1"))

    assert code_payload["error"] == "InvalidDiscountCodeError"
    assert code_payload["reason"] == "inactive_code"
    assert payment_payload["payment_id"] == "P1"
