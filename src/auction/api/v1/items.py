"""Item listing API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from auction.api.deps import (
    AdminPrincipal,
    ClosingServiceDep,
    CurrentPrincipal,
    ItemServiceDep,
)
from auction.api.errors import to_http_exception
from auction.models.item import ItemStatus
from auction.repositories.base import ItemSnapshot
from auction.schemas.item import (
    CloseExpiredResponse,
    ItemCreate,
    ItemListResponse,
    ItemResponse,
    ItemUpdate,
)
from auction.services.bid_service import minimum_acceptable_bid
from auction.services.exceptions import AuctionError
from auction.services.state_machine import classify

router = APIRouter()


def build_item_response(
    item: ItemSnapshot, now: datetime, bid_count: int | None = None
) -> ItemResponse:
    """Render a snapshot with its effective status at ``now``."""
    effective = classify(item, now)
    return ItemResponse(
        item_id=item.item_id,
        seller_id=item.seller_id,
        title=item.title,
        description=item.description,
        item_condition=item.item_condition,
        starting_price=item.starting_price,
        min_increment=item.min_increment,
        current_bid=item.current_bid,
        highest_bidder_id=item.highest_bidder_id,
        minimum_bid=minimum_acceptable_bid(item) if effective is ItemStatus.ACTIVE else None,
        reserve_met=item.reserve_met,
        status=effective,
        auction_duration_days=item.auction_duration_days,
        start_date=item.start_date,
        end_date=item.end_date,
        created_at=item.created_at,
        bid_count=bid_count,
    )


@router.get("", response_model=ItemListResponse)
async def list_items(
    item_service: ItemServiceDep,
    status_filter: ItemStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get all items with pagination, optionally filtered by stored status."""
    items, total = await item_service.list_items(status=status_filter, skip=skip, limit=limit)
    now = item_service.now()
    return ItemListResponse(
        items=[build_item_response(item, now) for item in items],
        total=total,
    )


@router.get("/active", response_model=ItemListResponse)
async def list_active_items(item_service: ItemServiceDep):
    """Get auctions currently open for bidding, ending soonest first."""
    items = await item_service.list_active()
    now = item_service.now()
    return ItemListResponse(
        items=[build_item_response(item, now) for item in items],
        total=len(items),
    )


@router.get("/mine", response_model=ItemListResponse)
async def list_my_items(item_service: ItemServiceDep, principal: CurrentPrincipal):
    """Get the caller's listings with bid counts."""
    rows = await item_service.list_by_seller(principal.user_id)
    now = item_service.now()
    return ItemListResponse(
        items=[build_item_response(item, now, bid_count=count) for item, count in rows],
        total=len(rows),
    )


@router.get("/seller/{seller_id}", response_model=ItemListResponse)
async def list_seller_items(seller_id: UUID, item_service: ItemServiceDep):
    """Get a seller's listings."""
    rows = await item_service.list_by_seller(seller_id)
    now = item_service.now()
    return ItemListResponse(
        items=[build_item_response(item, now, bid_count=count) for item, count in rows],
        total=len(rows),
    )


@router.post("/close-expired", response_model=CloseExpiredResponse)
async def close_expired_items(
    closing_service: ClosingServiceDep,
    item_service: ItemServiceDep,
    admin: AdminPrincipal,
):
    """Run the closing sweep immediately (admin only)."""
    closed = await closing_service.close_expired_auctions(item_service.now())
    return CloseExpiredResponse(closed=closed, total=len(closed))


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: UUID, item_service: ItemServiceDep):
    """Get item by ID."""
    try:
        item = await item_service.get(item_id)
    except AuctionError as e:
        raise to_http_exception(e)
    return build_item_response(item, item_service.now())


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: ItemCreate,
    item_service: ItemServiceDep,
    principal: CurrentPrincipal,
):
    """Create a new listing owned by the caller."""
    item = await item_service.create(principal.user_id, item_data)
    return build_item_response(item, item_service.now(), bid_count=0)


@router.put("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: UUID,
    item_data: ItemUpdate,
    item_service: ItemServiceDep,
    principal: CurrentPrincipal,
):
    """Update a listing (seller or admin)."""
    try:
        item = await item_service.update(item_id, principal, item_data)
    except AuctionError as e:
        raise to_http_exception(e)
    return build_item_response(item, item_service.now())


@router.post("/{item_id}/publish", response_model=ItemResponse)
async def publish_item(item_id: UUID, item_service: ItemServiceDep, principal: CurrentPrincipal):
    """Publish a draft listing."""
    try:
        item = await item_service.publish(item_id, principal)
    except AuctionError as e:
        raise to_http_exception(e)
    return build_item_response(item, item_service.now())


@router.patch("/{item_id}/cancel", response_model=ItemResponse)
async def cancel_item(item_id: UUID, item_service: ItemServiceDep, principal: CurrentPrincipal):
    """Cancel an auction (seller or admin)."""
    try:
        item = await item_service.cancel(item_id, principal)
    except AuctionError as e:
        raise to_http_exception(e)
    return build_item_response(item, item_service.now())


@router.post("/{item_id}/close", response_model=ItemResponse)
async def close_item(item_id: UUID, item_service: ItemServiceDep, principal: CurrentPrincipal):
    """End an auction early (seller or admin)."""
    try:
        item = await item_service.close(item_id, principal)
    except AuctionError as e:
        raise to_http_exception(e)
    return build_item_response(item, item_service.now())


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: UUID, item_service: ItemServiceDep, principal: CurrentPrincipal):
    """Delete a listing that has no bids (seller or admin)."""
    try:
        await item_service.delete(item_id, principal)
    except AuctionError as e:
        raise to_http_exception(e)
