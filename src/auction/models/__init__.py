"""SQLAlchemy ORM models."""

from auction.models.base import TimestampMixin
from auction.models.bid import Bid
from auction.models.item import Item, ItemCondition, ItemStatus

__all__ = [
    "TimestampMixin",
    "Item",
    "ItemStatus",
    "ItemCondition",
    "Bid",
]
