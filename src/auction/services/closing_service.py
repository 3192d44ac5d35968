"""Closing sweep for auctions whose end date has passed."""

import logging
from datetime import datetime
from uuid import UUID

from auction.middleware.metrics import record_auctions_closed
from auction.models.item import ItemStatus
from auction.repositories.base import ItemRepository
from auction.services.redis_service import RedisService

logger = logging.getLogger(__name__)

SWEEP_LOCK_NAME = "sweep:close_expired"


class ClosingService:
    """Service class for ending expired auctions."""

    def __init__(self, items: ItemRepository, redis_service: RedisService | None = None):
        self.items = items
        self.redis_service = redis_service

    async def close_expired_auctions(self, now: datetime) -> list[UUID]:
        """Transition every active item with ``end_date <= now`` to ended.

        Each item is transitioned on its own with a conditional write that
        requires the stored status to still be active, so a concurrent bid,
        cancellation or lazy expiry is never overwritten.

        Args:
            now: Reference time, the same kind of value bid placement uses

        Returns:
            Ids of the items this sweep closed
        """
        closed = []
        for item_id in await self.items.find_expired_ids(now):
            updated = await self.items.conditional_transition_status(
                item_id, ItemStatus.ACTIVE, ItemStatus.ENDED
            )
            if updated is None:
                logger.info(f"Item {item_id} changed state before it could be closed, skipping")
                continue
            logger.info(
                f"Closed auction {item_id} at {updated.current_bid} "
                f"(highest bidder {updated.highest_bidder_id})"
            )
            closed.append(item_id)

        if closed:
            record_auctions_closed(len(closed))
        return closed

    async def run_exclusive_sweep(self, now: datetime, lock_ttl: int = 30) -> list[UUID] | None:
        """Run the sweep while holding the cluster-wide sweep lock.

        Returns:
            Closed item ids, or None if another worker holds the lock
        """
        if self.redis_service is None:
            return await self.close_expired_auctions(now)

        acquired, owner_id = await self.redis_service.acquire_lock(SWEEP_LOCK_NAME, ttl=lock_ttl)
        if not acquired:
            return None

        try:
            return await self.close_expired_auctions(now)
        finally:
            await self.redis_service.release_lock(SWEEP_LOCK_NAME, owner_id)


async def persist_lazy_expiry(items: ItemRepository, item_id: UUID) -> None:
    """Best-effort ``active -> ended`` write for an item observed past its end date.

    Idempotent; failures are logged and never raised because the caller's
    decision (reject the bid, refuse the transition) does not depend on it.
    """
    try:
        await items.conditional_transition_status(item_id, ItemStatus.ACTIVE, ItemStatus.ENDED)
    except Exception as e:
        logger.warning(f"Failed to persist expiry of item {item_id}: {e}")
