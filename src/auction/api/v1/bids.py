"""Bidding API endpoints."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from auction.api.deps import BidServiceDep, CurrentPrincipal
from auction.api.errors import to_http_exception
from auction.api.v1.items import build_item_response
from auction.repositories.base import BidRecord
from auction.schemas.bid import (
    BidCreate,
    BidHistoryResponse,
    BidPlacementResponse,
    BidResponse,
    HighestBidResponse,
)
from auction.services.exceptions import AuctionError

router = APIRouter()


def _history(bids: list[BidRecord]) -> BidHistoryResponse:
    return BidHistoryResponse(
        bids=[BidResponse.model_validate(bid) for bid in bids],
        total=len(bids),
    )


@router.post("", response_model=BidPlacementResponse, status_code=status.HTTP_201_CREATED)
async def place_bid(
    bid_data: BidCreate,
    principal: CurrentPrincipal,
    bid_service: BidServiceDep,
):
    """Place a bid on an item as the authenticated caller."""
    try:
        placement = await bid_service.place_bid(
            bid_data.item_id, principal.user_id, bid_data.amount
        )
    except AuctionError as e:
        raise to_http_exception(e)

    return BidPlacementResponse(
        bid=BidResponse.model_validate(placement.bid),
        item=build_item_response(placement.item, bid_service.clock.now()),
    )


@router.get("/me", response_model=BidHistoryResponse)
async def get_my_bids(principal: CurrentPrincipal, bid_service: BidServiceDep):
    """Get the caller's bids across all items, newest first."""
    return _history(await bid_service.get_bidder_bids(principal.user_id))


@router.get("/item/{item_id}", response_model=BidHistoryResponse)
async def get_item_bids(
    item_id: UUID,
    bid_service: BidServiceDep,
    order: Literal["asc", "desc"] = Query("desc"),
):
    """Get the bid history of an item."""
    try:
        bids = await bid_service.get_item_bids(item_id, newest_first=order == "desc")
    except AuctionError as e:
        raise to_http_exception(e)
    return _history(bids)


@router.get("/item/{item_id}/highest", response_model=HighestBidResponse)
async def get_highest_bid(item_id: UUID, bid_service: BidServiceDep):
    """Get the highest bid recorded for an item, or null before the first bid."""
    try:
        bid = await bid_service.get_highest_bid(item_id)
    except AuctionError as e:
        raise to_http_exception(e)
    return HighestBidResponse(bid=BidResponse.model_validate(bid) if bid else None)
