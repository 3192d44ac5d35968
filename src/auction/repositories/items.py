"""Item repository implementations.

Both implementations honour the same compare-and-swap contract: a conditional
write either applies completely and returns the new snapshot, or changes
nothing and returns ``None``.
"""

import asyncio
import dataclasses
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auction.models.item import Item, ItemStatus
from auction.repositories.base import ItemRepository, ItemSnapshot

_items = Item.__table__

_TERMINAL = (ItemStatus.ENDED.value, ItemStatus.CANCELLED.value)


class SqlAlchemyItemRepository(ItemRepository):
    """PostgreSQL-backed repository.

    Reads and conditional writes go through Core statements on the ``items``
    table so every snapshot reflects the committed row, never a cached ORM
    instance. Each conditional write is a single ``UPDATE ... WHERE
    <precondition> RETURNING`` committed immediately; a concurrent writer
    blocked on the row lock re-evaluates the predicate after the first commit
    and matches zero rows.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute_conditional(self, stmt) -> ItemSnapshot | None:
        result = await self.db.execute(stmt.returning(_items))
        row = result.first()
        await self.db.commit()
        return ItemSnapshot.from_model(row) if row is not None else None

    async def get(self, item_id: UUID) -> ItemSnapshot | None:
        result = await self.db.execute(select(_items).where(_items.c.item_id == item_id))
        row = result.first()
        return ItemSnapshot.from_model(row) if row is not None else None

    async def add(self, item: ItemSnapshot) -> ItemSnapshot:
        model = Item(
            item_id=item.item_id,
            seller_id=item.seller_id,
            title=item.title,
            description=item.description,
            item_condition=item.item_condition,
            starting_price=item.starting_price,
            min_increment=item.min_increment,
            reserve_price=item.reserve_price,
            current_bid=item.current_bid,
            highest_bidder_id=item.highest_bidder_id,
            status=item.status.value,
            auction_duration_days=item.auction_duration_days,
            start_date=item.start_date,
            end_date=item.end_date,
        )
        self.db.add(model)
        await self.db.commit()
        await self.db.refresh(model)
        return ItemSnapshot.from_model(model)

    async def conditional_update_bid(
        self,
        item_id: UUID,
        expected_current_bid: Decimal,
        new_amount: Decimal,
        new_bidder_id: UUID,
        *,
        now: datetime,
    ) -> ItemSnapshot | None:
        stmt = (
            update(_items)
            .where(_items.c.item_id == item_id)
            .where(_items.c.current_bid == expected_current_bid)
            .where(_items.c.status == ItemStatus.ACTIVE.value)
            .where(_items.c.end_date > now)
            .values(current_bid=new_amount, highest_bidder_id=new_bidder_id)
        )
        return await self._execute_conditional(stmt)

    async def conditional_transition_status(
        self,
        item_id: UUID,
        expected_status: ItemStatus,
        new_status: ItemStatus,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> ItemSnapshot | None:
        values: dict = {"status": new_status.value}
        if start_date is not None:
            values["start_date"] = start_date
        if end_date is not None:
            values["end_date"] = end_date

        stmt = (
            update(_items)
            .where(_items.c.item_id == item_id)
            .where(_items.c.status == expected_status.value)
            .values(**values)
        )
        return await self._execute_conditional(stmt)

    async def conditional_reschedule(
        self, item_id: UUID, auction_duration_days: int, end_date: datetime
    ) -> ItemSnapshot | None:
        stmt = (
            update(_items)
            .where(_items.c.item_id == item_id)
            .where(_items.c.current_bid == 0)
            .where(_items.c.status.not_in(_TERMINAL))
            .values(auction_duration_days=auction_duration_days, end_date=end_date)
        )
        return await self._execute_conditional(stmt)

    async def delete_if_unbid(self, item_id: UUID) -> bool:
        result = await self.db.execute(
            delete(_items)
            .where(_items.c.item_id == item_id)
            .where(_items.c.current_bid == 0)
            .returning(_items.c.item_id)
        )
        deleted = result.first() is not None
        await self.db.commit()
        return deleted

    async def update_details(self, item_id: UUID, **fields: str) -> ItemSnapshot | None:
        if not fields:
            return await self.get(item_id)
        stmt = update(_items).where(_items.c.item_id == item_id).values(**fields)
        return await self._execute_conditional(stmt)

    async def list_items(
        self, status: ItemStatus | None = None, skip: int = 0, limit: int = 100
    ) -> tuple[list[ItemSnapshot], int]:
        count_stmt = select(func.count(_items.c.item_id))
        stmt = select(_items).order_by(_items.c.created_at.desc()).offset(skip).limit(limit)
        if status is not None:
            count_stmt = count_stmt.where(_items.c.status == status.value)
            stmt = stmt.where(_items.c.status == status.value)

        total = (await self.db.execute(count_stmt)).scalar_one()
        result = await self.db.execute(stmt)
        return [ItemSnapshot.from_model(row) for row in result.all()], total

    async def list_active(self, now: datetime) -> list[ItemSnapshot]:
        result = await self.db.execute(
            select(_items)
            .where(_items.c.status == ItemStatus.ACTIVE.value)
            .where(_items.c.end_date > now)
            .order_by(_items.c.end_date.asc())
        )
        return [ItemSnapshot.from_model(row) for row in result.all()]

    async def list_by_seller(self, seller_id: UUID) -> list[ItemSnapshot]:
        result = await self.db.execute(
            select(_items)
            .where(_items.c.seller_id == seller_id)
            .order_by(_items.c.created_at.desc())
        )
        return [ItemSnapshot.from_model(row) for row in result.all()]

    async def find_expired_ids(self, now: datetime) -> list[UUID]:
        result = await self.db.execute(
            select(_items.c.item_id)
            .where(_items.c.status == ItemStatus.ACTIVE.value)
            .where(_items.c.end_date <= now)
        )
        return list(result.scalars().all())


class InMemoryItemRepository(ItemRepository):
    """Process-local repository for tests and single-process development.

    A single asyncio.Lock makes each check-then-write atomic with respect to
    other coroutines.
    """

    def __init__(self):
        self._items: dict[UUID, ItemSnapshot] = {}
        self._lock = asyncio.Lock()

    def _replace(self, item: ItemSnapshot, **changes) -> ItemSnapshot:
        updated = dataclasses.replace(item, updated_at=datetime.now(timezone.utc), **changes)
        self._items[item.item_id] = updated
        return updated

    async def get(self, item_id: UUID) -> ItemSnapshot | None:
        return self._items.get(item_id)

    async def add(self, item: ItemSnapshot) -> ItemSnapshot:
        now = datetime.now(timezone.utc)
        async with self._lock:
            if item.item_id in self._items:
                raise ValueError(f"Item {item.item_id} already exists")
            stored = dataclasses.replace(
                item,
                created_at=item.created_at or now,
                updated_at=item.updated_at or now,
            )
            self._items[item.item_id] = stored
        return stored

    async def conditional_update_bid(
        self,
        item_id: UUID,
        expected_current_bid: Decimal,
        new_amount: Decimal,
        new_bidder_id: UUID,
        *,
        now: datetime,
    ) -> ItemSnapshot | None:
        async with self._lock:
            item = self._items.get(item_id)
            if (
                item is None
                or item.current_bid != expected_current_bid
                or item.status is not ItemStatus.ACTIVE
                or item.end_date <= now
            ):
                return None
            return self._replace(item, current_bid=new_amount, highest_bidder_id=new_bidder_id)

    async def conditional_transition_status(
        self,
        item_id: UUID,
        expected_status: ItemStatus,
        new_status: ItemStatus,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> ItemSnapshot | None:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or item.status is not expected_status:
                return None
            changes: dict = {"status": new_status}
            if start_date is not None:
                changes["start_date"] = start_date
            if end_date is not None:
                changes["end_date"] = end_date
            return self._replace(item, **changes)

    async def conditional_reschedule(
        self, item_id: UUID, auction_duration_days: int, end_date: datetime
    ) -> ItemSnapshot | None:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or item.has_bids or item.status.value in _TERMINAL:
                return None
            return self._replace(
                item, auction_duration_days=auction_duration_days, end_date=end_date
            )

    async def delete_if_unbid(self, item_id: UUID) -> bool:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or item.has_bids:
                return False
            del self._items[item_id]
            return True

    async def update_details(self, item_id: UUID, **fields: str) -> ItemSnapshot | None:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            return self._replace(item, **fields) if fields else item

    async def list_items(
        self, status: ItemStatus | None = None, skip: int = 0, limit: int = 100
    ) -> tuple[list[ItemSnapshot], int]:
        items = [i for i in self._items.values() if status is None or i.status is status]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return items[skip:skip + limit], len(items)

    async def list_active(self, now: datetime) -> list[ItemSnapshot]:
        items = [
            i for i in self._items.values()
            if i.status is ItemStatus.ACTIVE and i.end_date > now
        ]
        return sorted(items, key=lambda i: i.end_date)

    async def list_by_seller(self, seller_id: UUID) -> list[ItemSnapshot]:
        items = [i for i in self._items.values() if i.seller_id == seller_id]
        return sorted(items, key=lambda i: i.created_at, reverse=True)

    async def find_expired_ids(self, now: datetime) -> list[UUID]:
        return [
            i.item_id for i in self._items.values()
            if i.status is ItemStatus.ACTIVE and i.end_date <= now
        ]
