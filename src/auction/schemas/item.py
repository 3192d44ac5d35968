"""Item schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from auction.models.item import ItemCondition, ItemStatus


class ItemCreate(BaseModel):
    """Schema for listing creation request."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=10000)
    item_condition: ItemCondition = ItemCondition.GOOD
    starting_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    min_increment: Decimal = Field(default=Decimal("1.00"), gt=0, max_digits=12, decimal_places=2)
    reserve_price: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    auction_duration_days: int = Field(..., ge=1, le=365)
    publish: bool = True


class ItemUpdate(BaseModel):
    """Schema for listing update request. Pricing is fixed at creation."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=10000)
    item_condition: ItemCondition | None = None
    auction_duration_days: int | None = Field(None, ge=1, le=365)


class ItemResponse(BaseModel):
    """Schema for item response.

    ``status`` is the effective state at response time, which can be ahead of
    the stored status for an auction whose end date just passed.
    """

    item_id: UUID
    seller_id: UUID
    title: str
    description: str
    item_condition: str
    starting_price: Decimal
    min_increment: Decimal
    current_bid: Decimal
    highest_bidder_id: UUID | None
    minimum_bid: Decimal | None
    reserve_met: bool
    status: ItemStatus
    auction_duration_days: int
    start_date: datetime
    end_date: datetime
    created_at: datetime | None = None
    bid_count: int | None = None


class ItemListResponse(BaseModel):
    """Schema for item list response."""

    items: list[ItemResponse]
    total: int


class CloseExpiredResponse(BaseModel):
    closed: list[UUID]
    total: int
