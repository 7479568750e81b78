"""Error handling utilities."""

from typing import Optional


class ListingEngineError(Exception):
    """Base exception for the listing engine."""
    pass


class InvalidCombinationError(ListingEngineError):
    """Requested (category, duration) pair has no price."""

    def __init__(self, category: str, duration: str, reason: Optional[str] = None):
        self.category = category
        self.duration = duration
        self.reason = reason or "duration_not_offered"
        super().__init__(f"No price for category={category} duration={duration} ({self.reason})")


class InvalidDiscountCodeError(ListingEngineError):
    """Discount code rejected by the discount authority."""

    def __init__(self, code: str, reason: str = "unknown_code"):
        self.code = code
        self.reason = reason
        super().__init__(f"Invalid discount code '{code}': {reason}")


class PaymentCreationFailedError(ListingEngineError):
    """Payment provider unreachable or rejected link creation."""
    pass


class PaymentFailedError(ListingEngineError):
    """Payment provider explicitly reported cancellation or error."""

    def __init__(self, payment_id: str, status: Optional[str] = None):
        self.payment_id = payment_id
        self.status = status
        super().__init__(f"Payment {payment_id} failed (status={status})")


class PaymentPendingError(ListingEngineError):
    """Payment provider has no record of a payment yet."""

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} is still pending")


class ListingNotFoundError(ListingEngineError):
    """Listing does not exist."""
    pass


class PaymentNotFoundError(ListingEngineError):
    """Payment record does not exist."""
    pass


class InvalidTransitionError(ListingEngineError):
    """Listing cannot move from its current status to the requested one."""

    def __init__(self, listing_id: str, from_status: str, action: str):
        self.listing_id = listing_id
        self.from_status = from_status
        self.action = action
        super().__init__(f"Listing {listing_id} cannot {action} from status '{from_status}'")


class SupabaseError(ListingEngineError):
    """Supabase operation error."""
    pass


class SquareAPIError(ListingEngineError):
    """Square API call failed (transport, timeout or non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SquareNotFoundError(SquareAPIError):
    """Square returned 404 for the requested object."""
    pass


def http_status_for(error: Exception) -> int:
    """HTTP status code an API handler returns for an engine error."""
    if isinstance(error, (InvalidCombinationError, InvalidDiscountCodeError, InvalidTransitionError)):
        return 400
    if isinstance(error, PaymentFailedError):
        return 402
    if isinstance(error, PaymentPendingError):
        return 202
    if isinstance(error, (ListingNotFoundError, PaymentNotFoundError)):
        return 404
    if isinstance(error, PaymentCreationFailedError):
        return 502
    return 500


def error_payload(error: Exception) -> dict:
    """JSON body describing an engine error."""
    payload = {"error": type(error).__name__, "detail": str(error)}
    reason = getattr(error, "reason", None)
    if reason:
        payload["reason"] = reason
    payment_id = getattr(error, "payment_id", None)
    if payment_id:
        payload["payment_id"] = payment_id
    return payload
