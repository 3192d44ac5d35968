"""Bid placement protocol."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from auction.core.config import settings
from auction.middleware.metrics import (
    record_bid_conflict,
    record_bid_outcome,
    record_ledger_inconsistency,
)
from auction.models.item import ItemStatus
from auction.repositories.base import BidLedger, BidRecord, ItemRepository, ItemSnapshot
from auction.services.clock import Clock, SystemClock
from auction.services.closing_service import persist_lazy_expiry
from auction.services.exceptions import (
    AuctionClosed,
    AuctionError,
    AuctionNotActive,
    BidTooLow,
    Contention,
    ItemNotFound,
    LedgerInconsistency,
    SelfBid,
)
from auction.services.state_machine import classify

logger = logging.getLogger(__name__)


def minimum_acceptable_bid(item: ItemSnapshot) -> Decimal:
    """Lowest amount the next bid may offer.

    The first bid must reach ``starting_price``; every later bid must beat
    ``current_bid`` by at least ``min_increment``. The minimum itself is a
    valid bid. A free listing (``starting_price`` of 0) still needs a positive
    first bid, so its floor is one increment.
    """
    if item.has_bids:
        return item.current_bid + item.min_increment
    if item.starting_price > 0:
        return item.starting_price
    return item.min_increment


@dataclass(frozen=True)
class BidPlacement:
    """Result of an accepted bid."""

    bid: BidRecord
    item: ItemSnapshot


class BidService:
    """Validates and commits bids with optimistic concurrency.

    No lock is held across the read and the write. The conditional update on
    the item repository is the commit point; if another writer got there
    first the whole validation is repeated against the fresh snapshot.
    """

    def __init__(
        self,
        items: ItemRepository,
        ledger: BidLedger,
        clock: Clock | None = None,
        max_retries: int | None = None,
    ):
        self.items = items
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.max_retries = max_retries if max_retries is not None else settings.BID_MAX_RETRIES

    async def place_bid(self, item_id: UUID, bidder_id: UUID, amount: Decimal) -> BidPlacement:
        """Place a bid on an item.

        Args:
            item_id: Item UUID
            bidder_id: Authenticated bidder UUID
            amount: Proposed bid amount

        Returns:
            The ledger record and the item snapshot after the update

        Raises:
            ItemNotFound: Item does not exist
            AuctionClosed: Auction has ended (including lazily expired items)
            AuctionNotActive: Item is a draft or cancelled
            SelfBid: Bidder is the seller
            BidTooLow: Amount is below the current minimum
            Contention: Lost the compare-and-swap race max_retries times
            LedgerInconsistency: Item updated but the ledger append failed
        """
        amount = Decimal(amount)
        try:
            placement = await self._place_with_retries(item_id, bidder_id, amount)
        except AuctionError as e:
            record_bid_outcome(e.code)
            raise
        record_bid_outcome("ACCEPTED")
        return placement

    async def _place_with_retries(
        self, item_id: UUID, bidder_id: UUID, amount: Decimal
    ) -> BidPlacement:
        for attempt in range(1, self.max_retries + 1):
            item = await self.items.get(item_id)
            if item is None:
                raise ItemNotFound(item_id)

            now = self.clock.now()
            await self._ensure_biddable(item, now)

            if bidder_id == item.seller_id:
                raise SelfBid()

            minimum = minimum_acceptable_bid(item)
            if amount < minimum:
                raise BidTooLow(minimum)

            updated = await self.items.conditional_update_bid(
                item_id,
                expected_current_bid=item.current_bid,
                new_amount=amount,
                new_bidder_id=bidder_id,
                now=now,
            )
            if updated is None:
                record_bid_conflict()
                logger.info(
                    f"Bid conflict on item {item_id} (attempt {attempt}/{self.max_retries}), "
                    "re-reading"
                )
                continue

            bid = await self._append_to_ledger(updated, bidder_id, amount, now)
            logger.info(f"Accepted bid {bid.bid_id} of {amount} on item {item_id} by {bidder_id}")
            return BidPlacement(bid=bid, item=updated)

        logger.warning(f"Giving up on bid for item {item_id} after {self.max_retries} conflicts")
        raise Contention(item_id, self.max_retries)

    async def _ensure_biddable(self, item: ItemSnapshot, now: datetime) -> None:
        effective = classify(item, now)
        if effective is ItemStatus.ACTIVE:
            return

        if effective is ItemStatus.ENDED:
            if item.status is ItemStatus.ACTIVE:
                await persist_lazy_expiry(self.items, item.item_id)
            raise AuctionClosed()

        raise AuctionNotActive(effective.value)

    async def _append_to_ledger(
        self, item: ItemSnapshot, bidder_id: UUID, amount: Decimal, accepted_at: datetime
    ) -> BidRecord:
        # accepted_at is the instant the winning write was validated at, never the
        # commit acknowledgement time, so ledger time order follows acceptance order
        try:
            return await self.ledger.append(item.item_id, bidder_id, amount, accepted_at)
        except Exception as e:
            record_ledger_inconsistency()
            logger.critical(
                "Bid ledger append failed after item update; reconcile manually: "
                f"item_id={item.item_id} bidder_id={bidder_id} amount={amount} "
                f"accepted_at={accepted_at.isoformat()} error={e!r}"
            )
            raise LedgerInconsistency(item.item_id, bidder_id, amount) from e

    async def get_item_bids(self, item_id: UUID, newest_first: bool = True) -> list[BidRecord]:
        """Get all bids for an item.

        Raises:
            ItemNotFound: Item does not exist
        """
        if await self.items.get(item_id) is None:
            raise ItemNotFound(item_id)
        return await self.ledger.list_by_item(item_id, newest_first=newest_first)

    async def get_highest_bid(self, item_id: UUID) -> BidRecord | None:
        if await self.items.get(item_id) is None:
            raise ItemNotFound(item_id)
        return await self.ledger.highest_for(item_id)

    async def get_bidder_bids(self, bidder_id: UUID) -> list[BidRecord]:
        return await self.ledger.list_by_bidder(bidder_id)
