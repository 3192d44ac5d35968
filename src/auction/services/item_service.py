"""Item service for listing lifecycle operations."""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from auction.core.security import Principal
from auction.models.item import ItemStatus
from auction.repositories.base import BidLedger, ItemRepository, ItemSnapshot
from auction.schemas.item import ItemCreate, ItemUpdate
from auction.services.clock import Clock, SystemClock
from auction.services.closing_service import persist_lazy_expiry
from auction.services.exceptions import (
    AccessDenied,
    Contention,
    DeleteNotAllowed,
    InvalidTransition,
    ItemNotFound,
    UpdateNotAllowed,
)
from auction.services.state_machine import TERMINAL_STATES, classify, ensure_transition

logger = logging.getLogger(__name__)


def compute_end_date(start_date: datetime, auction_duration_days: int) -> datetime:
    return start_date + timedelta(days=auction_duration_days)


class ItemService:
    """Service class for listing operations.

    Status changes are validated against the state machine using the item's
    effective state and then applied with a conditional transition, so they
    compose safely with concurrent bids and the closing sweep.
    """

    def __init__(self, items: ItemRepository, ledger: BidLedger, clock: Clock | None = None):
        self.items = items
        self.ledger = ledger
        self.clock = clock or SystemClock()

    def now(self) -> datetime:
        return self.clock.now()

    async def create(self, seller_id: UUID, item_data: ItemCreate) -> ItemSnapshot:
        """Create a new listing.

        Args:
            seller_id: Owner of the listing
            item_data: Listing creation data

        Returns:
            Created item, active unless ``publish`` was false
        """
        start_date = self.clock.now()
        item = ItemSnapshot(
            item_id=uuid.uuid4(),
            seller_id=seller_id,
            title=item_data.title,
            description=item_data.description,
            item_condition=item_data.item_condition.value,
            starting_price=item_data.starting_price,
            min_increment=item_data.min_increment,
            reserve_price=item_data.reserve_price,
            current_bid=Decimal("0"),
            highest_bidder_id=None,
            status=ItemStatus.ACTIVE if item_data.publish else ItemStatus.DRAFT,
            auction_duration_days=item_data.auction_duration_days,
            start_date=start_date,
            end_date=compute_end_date(start_date, item_data.auction_duration_days),
        )
        created = await self.items.add(item)
        logger.info(f"Created {created.status.value} item {created.item_id} for seller {seller_id}")
        return created

    async def get(self, item_id: UUID) -> ItemSnapshot:
        """Get item by ID.

        Raises:
            ItemNotFound: Item does not exist
        """
        item = await self.items.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    async def list_items(
        self, status: ItemStatus | None = None, skip: int = 0, limit: int = 100
    ) -> tuple[list[ItemSnapshot], int]:
        return await self.items.list_items(status=status, skip=skip, limit=limit)

    async def list_active(self) -> list[ItemSnapshot]:
        return await self.items.list_active(self.clock.now())

    async def list_by_seller(self, seller_id: UUID) -> list[tuple[ItemSnapshot, int]]:
        """Seller's listings paired with their bid counts."""
        items = await self.items.list_by_seller(seller_id)
        counts = await self.ledger.count_by_item(i.item_id for i in items)
        return [(item, counts.get(item.item_id, 0)) for item in items]

    async def update(self, item_id: UUID, actor: Principal, item_data: ItemUpdate) -> ItemSnapshot:
        """Update descriptive fields and, before any bid, the auction duration.

        Raises:
            ItemNotFound: Item does not exist
            AccessDenied: Actor is neither the seller nor an admin
            UpdateNotAllowed: Auction is over, or duration change after a bid
            Contention: A bid landed while the duration was being changed
        """
        item = await self._get_owned(item_id, actor)
        effective = classify(item, self.clock.now())
        if effective in TERMINAL_STATES and not actor.is_admin:
            raise UpdateNotAllowed("Cannot update an auction that has ended or been cancelled")

        fields = item_data.model_dump(exclude_unset=True, exclude_none=True)
        duration = fields.pop("auction_duration_days", None)
        if "item_condition" in fields:
            fields["item_condition"] = fields["item_condition"].value

        if duration is not None and duration != item.auction_duration_days:
            if item.has_bids or effective in TERMINAL_STATES:
                raise UpdateNotAllowed("Auction duration can only change before the first bid")
            rescheduled = await self.items.conditional_reschedule(
                item_id, duration, compute_end_date(item.start_date, duration)
            )
            if rescheduled is None:
                raise Contention(item_id, 1)
            item = rescheduled

        if fields:
            updated = await self.items.update_details(item_id, **fields)
            if updated is None:
                raise ItemNotFound(item_id)
            item = updated
        return item

    async def publish(self, item_id: UUID, actor: Principal) -> ItemSnapshot:
        """Move a draft to active and start its auction clock now."""
        item = await self._get_owned(item_id, actor)
        ensure_transition(item.status, ItemStatus.ACTIVE)

        start_date = self.clock.now()
        return await self._apply_transition(
            item,
            ItemStatus.ACTIVE,
            start_date=start_date,
            end_date=compute_end_date(start_date, item.auction_duration_days),
        )

    async def cancel(self, item_id: UUID, actor: Principal) -> ItemSnapshot:
        """Cancel a draft or running auction.

        Raises:
            InvalidTransition: Auction already ended (including by expiry) or cancelled
        """
        item = await self._get_owned(item_id, actor)
        effective = await self._effective_state(item)
        ensure_transition(effective, ItemStatus.CANCELLED)
        return await self._apply_transition(item, ItemStatus.CANCELLED)

    async def close(self, item_id: UUID, actor: Principal) -> ItemSnapshot:
        """End a running auction now. An already expired auction is just persisted as ended."""
        item = await self._get_owned(item_id, actor)
        effective = await self._effective_state(item)
        if effective is ItemStatus.ENDED and item.status is ItemStatus.ACTIVE:
            return await self.get(item_id)
        ensure_transition(effective, ItemStatus.ENDED)
        return await self._apply_transition(item, ItemStatus.ENDED)

    async def delete(self, item_id: UUID, actor: Principal) -> None:
        """Delete a listing that has never received a bid.

        Raises:
            ItemNotFound: Item does not exist
            AccessDenied: Actor is neither the seller nor an admin
            DeleteNotAllowed: Item has bids, including one that landed concurrently
        """
        item = await self._get_owned(item_id, actor)
        if item.has_bids:
            raise DeleteNotAllowed()

        if not await self.items.delete_if_unbid(item_id):
            if await self.items.get(item_id) is None:
                raise ItemNotFound(item_id)
            raise DeleteNotAllowed()
        logger.info(f"Deleted item {item_id} (requested by {actor.user_id})")

    async def _get_owned(self, item_id: UUID, actor: Principal) -> ItemSnapshot:
        item = await self.get(item_id)
        if item.seller_id != actor.user_id and not actor.is_admin:
            raise AccessDenied()
        return item

    async def _effective_state(self, item: ItemSnapshot) -> ItemStatus:
        effective = classify(item, self.clock.now())
        if effective is ItemStatus.ENDED and item.status is ItemStatus.ACTIVE:
            await persist_lazy_expiry(self.items, item.item_id)
        return effective

    async def _apply_transition(
        self, item: ItemSnapshot, target: ItemStatus, **dates: datetime
    ) -> ItemSnapshot:
        updated = await self.items.conditional_transition_status(
            item.item_id, item.status, target, **dates
        )
        if updated is None:
            fresh = await self.get(item.item_id)
            raise InvalidTransition(fresh.status.value, target.value)
        logger.info(f"Item {item.item_id} moved from {item.status.value} to {target.value}")
        return updated
