"""Listing models."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ListingCategory(str, Enum):
    """Listing category chosen by the owner."""
    FOR_SALE_BY_OWNER = "FSBO"
    AGENT = "Agent"
    RENT = "Rent"
    OPEN_HOUSE = "OpenHouse"
    WANTED = "Wanted"
    CLASSIFIED = "Classified"
    GARAGE_SALE = "GarageSale"


class PriceCategory(str, Enum):
    """Pricing tier derived from the listing category."""
    REAL_PROPERTY = "REAL_PROPERTY"
    OPEN_HOUSE_LIKE = "OPEN_HOUSE_LIKE"
    CLASSIFIED = "CLASSIFIED"


class ListingDuration(str, Enum):
    """Publication window."""
    THREE_DAY = "3_day"
    SEVEN_DAY = "7_day"
    THIRTY_DAY = "30_day"


class ListingStatus(str, Enum):
    """Lifecycle states, in forward order."""
    DRAFT = "DRAFT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"
    DELETED = "DELETED"

    @property
    def is_published(self) -> bool:
        """True once the listing has been activated in the current cycle."""
        return self in (
            ListingStatus.ACTIVE,
            ListingStatus.EXPIRING_SOON,
            ListingStatus.EXPIRED,
            ListingStatus.DELETED,
        )


class ContactInfo(BaseModel):
    """Owner-supplied contact block."""
    name: Optional[str] = Field(None, description="Contact name")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")


class ListingDraftInput(BaseModel):
    """Fields accepted when a listing is first created."""
    owner_id: str = Field(..., description="Submitting user ID")
    title: str = Field(..., min_length=1, max_length=200, description="Listing title")
    description: Optional[str] = Field(None, description="Listing body")
    category: ListingCategory = Field(..., description="Listing category")
    duration: ListingDuration = Field(
        default=ListingDuration.THIRTY_DAY,
        description="Requested publication window"
    )
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    metadata: dict = Field(default_factory=dict, description="Additional metadata")


class Listing(BaseModel):
    """Classified or real estate listing subject to pay-to-publish."""
    listing_id: str = Field(..., description="Listing ID (text)")
    owner_id: str = Field(..., description="Owner user ID (text)")
    title: str = Field(..., description="Listing title")
    description: Optional[str] = Field(None, description="Listing body")
    category: ListingCategory = Field(..., description="Listing category")
    duration: ListingDuration = Field(..., description="Publication window")
    status: ListingStatus = Field(default=ListingStatus.DRAFT, description="Lifecycle status")
    created_at: datetime
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    payment_ref: Optional[str] = Field(None, description="PaymentRecord ID of the current cycle")
    discount_code_applied: Optional[str] = None
    pending_discount_code: Optional[str] = Field(
        None,
        description="Code selected while saving as draft, not yet applied"
    )
    publish_cycle: int = Field(default=0, ge=0, description="Incremented by republish")
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    metadata: dict = Field(default_factory=dict, description="Additional metadata")

    def model_post_init(self, __context) -> None:
        """Validate that drafts carry no publication state."""
        if self.status == ListingStatus.DRAFT:
            if self.expiration_date is not None or self.payment_ref is not None:
                raise ValueError("Draft listings must have no expiration_date and no payment_ref")
        if self.status.is_published and self.status != ListingStatus.DELETED:
            if self.expiration_date is None or self.published_at is None:
                raise ValueError("Published listings must have published_at and expiration_date")


class PublishResult(BaseModel):
    """Outcome of submitting a listing for publication."""
    requires_payment: bool
    listing: Listing
    payment_id: str
    payable_url: Optional[str] = None
    amount_cents: int = 0
