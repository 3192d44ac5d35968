"""Storage contracts for items and the bid ledger."""

from auction.repositories.base import BidLedger, BidRecord, ItemRepository, ItemSnapshot
from auction.repositories.bids import InMemoryBidLedger, SqlAlchemyBidLedger
from auction.repositories.items import InMemoryItemRepository, SqlAlchemyItemRepository

__all__ = [
    "ItemSnapshot",
    "BidRecord",
    "ItemRepository",
    "BidLedger",
    "SqlAlchemyItemRepository",
    "InMemoryItemRepository",
    "SqlAlchemyBidLedger",
    "InMemoryBidLedger",
]
