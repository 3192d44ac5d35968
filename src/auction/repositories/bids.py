"""Bid ledger implementations (append-only)."""

import asyncio
import itertools
import uuid
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auction.models.bid import Bid
from auction.repositories.base import BidLedger, BidRecord


class SqlAlchemyBidLedger(BidLedger):
    """PostgreSQL-backed ledger. Rows are inserted and read, never updated."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self, item_id: UUID, bidder_id: UUID, amount: Decimal, created_at: datetime
    ) -> BidRecord:
        bid = Bid(
            bid_id=uuid.uuid4(),
            item_id=item_id,
            bidder_id=bidder_id,
            amount=amount,
            created_at=created_at,
        )
        self.db.add(bid)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(bid)
        return BidRecord.from_model(bid)

    async def list_by_item(self, item_id: UUID, newest_first: bool = True) -> list[BidRecord]:
        order = (
            (Bid.created_at.desc(), Bid.amount.desc(), Bid.seq.desc())
            if newest_first
            else (Bid.created_at.asc(), Bid.amount.asc(), Bid.seq.asc())
        )
        result = await self.db.execute(select(Bid).where(Bid.item_id == item_id).order_by(*order))
        return [BidRecord.from_model(bid) for bid in result.scalars().all()]

    async def highest_for(self, item_id: UUID) -> BidRecord | None:
        result = await self.db.execute(
            select(Bid)
            .where(Bid.item_id == item_id)
            .order_by(Bid.amount.desc(), Bid.seq.asc())
            .limit(1)
        )
        bid = result.scalar_one_or_none()
        return BidRecord.from_model(bid) if bid else None

    async def list_by_bidder(self, bidder_id: UUID) -> list[BidRecord]:
        result = await self.db.execute(
            select(Bid)
            .where(Bid.bidder_id == bidder_id)
            .order_by(Bid.created_at.desc(), Bid.seq.desc())
        )
        return [BidRecord.from_model(bid) for bid in result.scalars().all()]

    async def count_by_item(self, item_ids: Iterable[UUID]) -> dict[UUID, int]:
        ids = list(item_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(Bid.item_id, func.count(Bid.bid_id))
            .where(Bid.item_id.in_(ids))
            .group_by(Bid.item_id)
        )
        counts = {item_id: 0 for item_id in ids}
        counts.update({item_id: count for item_id, count in result.all()})
        return counts


class InMemoryBidLedger(BidLedger):
    """Process-local ledger for tests and single-process development."""

    def __init__(self):
        self._bids: dict[UUID, list[BidRecord]] = defaultdict(list)
        self._seq = itertools.count(1)
        self._lock = asyncio.Lock()

    async def append(
        self, item_id: UUID, bidder_id: UUID, amount: Decimal, created_at: datetime
    ) -> BidRecord:
        async with self._lock:
            record = BidRecord(
                bid_id=uuid.uuid4(),
                item_id=item_id,
                bidder_id=bidder_id,
                amount=amount,
                created_at=created_at,
                seq=next(self._seq),
            )
            self._bids[item_id].append(record)
        return record

    async def list_by_item(self, item_id: UUID, newest_first: bool = True) -> list[BidRecord]:
        return sorted(
            self._bids.get(item_id, []),
            key=lambda b: (b.created_at, b.amount, b.seq),
            reverse=newest_first,
        )

    async def highest_for(self, item_id: UUID) -> BidRecord | None:
        bids = self._bids.get(item_id)
        if not bids:
            return None
        return max(bids, key=lambda b: (b.amount, -b.seq))

    async def list_by_bidder(self, bidder_id: UUID) -> list[BidRecord]:
        bids = [b for records in self._bids.values() for b in records if b.bidder_id == bidder_id]
        return sorted(bids, key=lambda b: (b.created_at, b.seq), reverse=True)

    async def count_by_item(self, item_ids: Iterable[UUID]) -> dict[UUID, int]:
        return {item_id: len(self._bids.get(item_id, [])) for item_id in item_ids}
