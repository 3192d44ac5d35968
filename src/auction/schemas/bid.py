"""Bid schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from auction.schemas.item import ItemResponse


class BidCreate(BaseModel):
    """Schema for bid placement request."""

    item_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class BidResponse(BaseModel):
    """Schema for bid response."""

    bid_id: UUID
    item_id: UUID
    bidder_id: UUID
    amount: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class BidPlacementResponse(BaseModel):
    """Schema for an accepted bid together with the updated item."""

    bid: BidResponse
    item: ItemResponse


class BidHistoryResponse(BaseModel):
    """Schema for bid history response."""

    bids: list[BidResponse]
    total: int


class HighestBidResponse(BaseModel):
    bid: BidResponse | None
