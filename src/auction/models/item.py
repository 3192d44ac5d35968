"""Item model for auction listings."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from auction.core.database import Base
from auction.models.base import TimestampMixin


class ItemStatus(str, enum.Enum):
    """Lifecycle states of a listing."""

    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


class ItemCondition(str, enum.Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    EXCELLENT = "excellent"
    VERY_GOOD = "very_good"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    FOR_PARTS = "for_parts"


class Item(Base, TimestampMixin):
    """Item model representing an auction listing and its bidding summary."""

    __tablename__ = "items"

    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    item_condition: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ItemCondition.GOOD.value,
    )
    starting_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    min_increment: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("1.00"),
    )
    reserve_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    current_bid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    highest_bidder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ItemStatus.ACTIVE.value,
    )
    auction_duration_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    end_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("starting_price >= 0", name="chk_item_starting_price"),
        CheckConstraint("min_increment > 0", name="chk_item_min_increment"),
        CheckConstraint("reserve_price >= 0", name="chk_item_reserve_price"),
        CheckConstraint("auction_duration_days >= 1", name="chk_item_duration"),
        CheckConstraint(
            "(current_bid = 0 AND highest_bidder_id IS NULL) "
            "OR (current_bid > 0 AND highest_bidder_id IS NOT NULL)",
            name="chk_item_highest_bidder",
        ),
        CheckConstraint(
            "status IN ('draft', 'active', 'ended', 'cancelled')",
            name="chk_item_status",
        ),
        Index("idx_items_status_end", "status", "end_date"),
        Index("idx_items_seller", "seller_id"),
    )
