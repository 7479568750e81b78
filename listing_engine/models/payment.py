"""Payment record and gateway result models."""

from enum import Enum
from typing import Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field

from listing_engine.models.listing import ListingCategory, ListingDuration


class PaymentStatus(str, Enum):
    """PaymentRecord states."""
    CREATED = "CREATED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        """Terminal states are immutable."""
        return self in (PaymentStatus.COMPLETED, PaymentStatus.CANCELED)


class ReconciliationStatus(str, Enum):
    """Outcome of re-checking a payment accepted on an ambiguous verification."""
    NOT_REQUIRED = "NOT_REQUIRED"
    UNRESOLVED = "UNRESOLVED"
    CONFIRMED = "CONFIRMED"
    DISPUTED = "DISPUTED"


class PaymentVerification(str, Enum):
    """Four-valued verification result."""
    COMPLETED = "COMPLETED"
    PENDING_BUT_ACCEPTABLE = "PENDING_BUT_ACCEPTABLE"
    PENDING = "PENDING"
    FAILED = "FAILED"

    @property
    def allows_activation(self) -> bool:
        return self in (PaymentVerification.COMPLETED, PaymentVerification.PENDING_BUT_ACCEPTABLE)


class PaymentRecord(BaseModel):
    """Internal record for a real or synthetic (free) payment tied to one publish attempt."""
    payment_id: str = Field(..., description="Payment ID (text)")
    listing_id: str = Field(..., description="Listing ID (text FK)")
    external_link_id: Optional[str] = Field(None, description="Square payment link ID, sqp_ ID for free")
    order_id: Optional[str] = Field(None, description="Square order ID")
    payable_url: Optional[str] = Field(None, description="Checkout URL")
    amount_cents: int = Field(..., ge=0, description="Amount in cents")
    currency: str = Field(default="USD")
    is_free: bool = False
    status: PaymentStatus = Field(default=PaymentStatus.CREATED)
    discount_code: Optional[str] = None
    listing_category: Optional[ListingCategory] = None
    listing_duration: Optional[ListingDuration] = None
    assumed_completed: bool = Field(
        default=False,
        description="Completed on an ambiguous verification, awaiting reconciliation"
    )
    reconciliation_status: ReconciliationStatus = Field(default=ReconciliationStatus.NOT_REQUIRED)
    created_at: datetime
    updated_at: Optional[datetime] = None


class FreePaymentResult(BaseModel):
    """Payment satisfied without the provider."""
    kind: Literal["free"] = "free"
    payment_id: str
    is_free: Literal[True] = True


class LinkPaymentResult(BaseModel):
    """Payment awaiting checkout at the provider."""
    kind: Literal["link"] = "link"
    payment_id: str
    payable_url: str
    is_free: Literal[False] = False


CreatePaymentResult = Union[FreePaymentResult, LinkPaymentResult]
