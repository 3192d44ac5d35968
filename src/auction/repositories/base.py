"""Snapshots and abstract storage contracts.

The item repository never exposes a raw read-modify-write. Every mutation of
an item's bidding fields or status names the value it expects to replace, and
returns ``None`` when that precondition no longer holds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from auction.models.bid import Bid
from auction.models.item import Item, ItemStatus
from auction.services.clock import ensure_utc


@dataclass(frozen=True)
class ItemSnapshot:
    """Immutable view of an item as read from storage."""

    item_id: UUID
    seller_id: UUID
    title: str
    description: str
    item_condition: str
    starting_price: Decimal
    min_increment: Decimal
    reserve_price: Decimal
    current_bid: Decimal
    highest_bidder_id: UUID | None
    status: ItemStatus
    auction_duration_days: int
    start_date: datetime
    end_date: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, item: Item) -> "ItemSnapshot":
        return cls(
            item_id=item.item_id,
            seller_id=item.seller_id,
            title=item.title,
            description=item.description,
            item_condition=item.item_condition,
            starting_price=Decimal(item.starting_price),
            min_increment=Decimal(item.min_increment),
            reserve_price=Decimal(item.reserve_price),
            current_bid=Decimal(item.current_bid),
            highest_bidder_id=item.highest_bidder_id,
            status=ItemStatus(item.status),
            auction_duration_days=item.auction_duration_days,
            start_date=ensure_utc(item.start_date),
            end_date=ensure_utc(item.end_date),
            created_at=item.created_at,
            updated_at=item.updated_at,
        )

    @property
    def has_bids(self) -> bool:
        return self.current_bid > 0

    @property
    def reserve_met(self) -> bool:
        # Settlement concern only, never consulted when accepting a bid
        return self.has_bids and self.current_bid >= self.reserve_price


@dataclass(frozen=True)
class BidRecord:
    """Immutable ledger entry for one accepted bid."""

    bid_id: UUID
    item_id: UUID
    bidder_id: UUID
    amount: Decimal
    created_at: datetime
    seq: int

    @classmethod
    def from_model(cls, bid: Bid) -> "BidRecord":
        return cls(
            bid_id=bid.bid_id,
            item_id=bid.item_id,
            bidder_id=bid.bidder_id,
            amount=Decimal(bid.amount),
            created_at=ensure_utc(bid.created_at),
            seq=bid.seq,
        )


class ItemRepository(ABC):
    """Persisted listings with conditional (compare-and-swap) mutation."""

    @abstractmethod
    async def get(self, item_id: UUID) -> ItemSnapshot | None:
        """Return the current snapshot, or None if the item does not exist."""

    @abstractmethod
    async def add(self, item: ItemSnapshot) -> ItemSnapshot:
        """Persist a newly created listing."""

    @abstractmethod
    async def conditional_update_bid(
        self,
        item_id: UUID,
        expected_current_bid: Decimal,
        new_amount: Decimal,
        new_bidder_id: UUID,
        *,
        now: datetime,
    ) -> ItemSnapshot | None:
        """Set current_bid/highest_bidder_id if nothing changed since the read.

        Succeeds only while the stored current_bid equals
        ``expected_current_bid``, the status is still active and the auction
        has not reached its end date at ``now``. Returns the updated snapshot,
        or None when the precondition failed.
        """

    @abstractmethod
    async def conditional_transition_status(
        self,
        item_id: UUID,
        expected_status: ItemStatus,
        new_status: ItemStatus,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> ItemSnapshot | None:
        """Move status from ``expected_status`` to ``new_status``.

        Optional dates are written in the same conditional update (used when a
        draft is published and its auction clock starts).
        """

    @abstractmethod
    async def conditional_reschedule(
        self, item_id: UUID, auction_duration_days: int, end_date: datetime
    ) -> ItemSnapshot | None:
        """Change the duration and end date while the item has no bids and is not terminal."""

    @abstractmethod
    async def delete_if_unbid(self, item_id: UUID) -> bool:
        """Remove the item if it still has no bids. Returns whether a row was removed."""

    @abstractmethod
    async def update_details(self, item_id: UUID, **fields: str) -> ItemSnapshot | None:
        """Update descriptive fields (title, description, item_condition)."""

    @abstractmethod
    async def list_items(
        self, status: ItemStatus | None = None, skip: int = 0, limit: int = 100
    ) -> tuple[list[ItemSnapshot], int]:
        """Return a page of items (newest first) and the total count."""

    @abstractmethod
    async def list_active(self, now: datetime) -> list[ItemSnapshot]:
        """Items that are active and not yet past their end date."""

    @abstractmethod
    async def list_by_seller(self, seller_id: UUID) -> list[ItemSnapshot]:
        pass

    @abstractmethod
    async def find_expired_ids(self, now: datetime) -> list[UUID]:
        """Ids of items still stored as active whose end date is at or before ``now``."""


class BidLedger(ABC):
    """Append-only store of accepted bids."""

    @abstractmethod
    async def append(
        self, item_id: UUID, bidder_id: UUID, amount: Decimal, created_at: datetime
    ) -> BidRecord:
        pass

    @abstractmethod
    async def list_by_item(self, item_id: UUID, newest_first: bool = True) -> list[BidRecord]:
        """Bids for one item in acceptance order, by (created_at, amount, seq).

        Amounts strictly increase along the acceptance chain, so amount breaks
        ties between equal timestamps.
        """

    @abstractmethod
    async def highest_for(self, item_id: UUID) -> BidRecord | None:
        pass

    @abstractmethod
    async def list_by_bidder(self, bidder_id: UUID) -> list[BidRecord]:
        """A bidder's bids, newest first."""

    @abstractmethod
    async def count_by_item(self, item_ids: Iterable[UUID]) -> dict[UUID, int]:
        pass
