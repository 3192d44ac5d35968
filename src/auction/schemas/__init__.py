"""Pydantic schemas for request/response validation."""

from auction.schemas.bid import (
    BidCreate,
    BidHistoryResponse,
    BidPlacementResponse,
    BidResponse,
    HighestBidResponse,
)
from auction.schemas.item import (
    CloseExpiredResponse,
    ItemCreate,
    ItemListResponse,
    ItemResponse,
    ItemUpdate,
)

__all__ = [
    "ItemCreate",
    "ItemUpdate",
    "ItemResponse",
    "ItemListResponse",
    "CloseExpiredResponse",
    "BidCreate",
    "BidResponse",
    "BidPlacementResponse",
    "BidHistoryResponse",
    "HighestBidResponse",
]
