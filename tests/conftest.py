"""Pytest configuration and fixtures for testing."""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from auction.core.security import Principal
from auction.models.item import ItemStatus
from auction.repositories.base import ItemSnapshot
from auction.repositories.bids import InMemoryBidLedger
from auction.repositories.items import InMemoryItemRepository
from auction.services.bid_service import BidService
from auction.services.item_service import ItemService


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now += delta

    def set(self, now: datetime) -> None:
        self._now = now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def item_repo() -> InMemoryItemRepository:
    return InMemoryItemRepository()


@pytest.fixture
def ledger() -> InMemoryBidLedger:
    return InMemoryBidLedger()


@pytest.fixture
def bid_service(item_repo, ledger, clock) -> BidService:
    return BidService(item_repo, ledger, clock=clock, max_retries=5)


@pytest.fixture
def item_service(item_repo, ledger, clock) -> ItemService:
    return ItemService(item_repo, ledger, clock=clock)


@pytest.fixture
def seller() -> Principal:
    return Principal(user_id=uuid4())


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id=uuid4(), role="admin")


@pytest.fixture
def make_item(item_repo, clock, seller):
    """Factory storing an item with sensible defaults.

    Defaults: starting_price=10, min_increment=1, no bids, active, ends in one day.
    """

    async def _make(**overrides) -> ItemSnapshot:
        start = overrides.pop("start_date", clock.now())
        duration = overrides.pop("auction_duration_days", 1)
        fields = dict(
            item_id=uuid4(),
            seller_id=seller.user_id,
            title="Vintage camera",
            description="Works fine",
            item_condition="good",
            starting_price=Decimal("10"),
            min_increment=Decimal("1"),
            reserve_price=Decimal("0"),
            current_bid=Decimal("0"),
            highest_bidder_id=None,
            status=ItemStatus.ACTIVE,
            auction_duration_days=duration,
            start_date=start,
            end_date=start + timedelta(days=duration),
        )
        fields.update(overrides)
        return await item_repo.add(ItemSnapshot(**fields))

    return _make


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.setex = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.register_script = MagicMock(return_value=AsyncMock(return_value=1))

    return redis
