"""Tests for listing lifecycle operations."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from auction.core.security import Principal
from auction.models.item import ItemCondition, ItemStatus
from auction.schemas.item import ItemCreate, ItemUpdate
from auction.services.exceptions import (
    AccessDenied,
    DeleteNotAllowed,
    InvalidTransition,
    ItemNotFound,
    UpdateNotAllowed,
)


def _create_data(**overrides) -> ItemCreate:
    data = dict(
        title="Mechanical keyboard",
        description="Brown switches",
        item_condition=ItemCondition.LIKE_NEW,
        starting_price=Decimal("25.00"),
        min_increment=Decimal("2.50"),
        auction_duration_days=7,
    )
    data.update(overrides)
    return ItemCreate(**data)


class TestCreateItem:
    """Listing creation."""

    @pytest.mark.asyncio
    async def test_create_active(self, item_service, seller, clock):
        item = await item_service.create(seller.user_id, _create_data())

        assert item.status is ItemStatus.ACTIVE
        assert item.seller_id == seller.user_id
        assert item.current_bid == Decimal("0")
        assert item.highest_bidder_id is None
        assert item.item_condition == "like_new"
        assert item.start_date == clock.now()
        assert item.end_date == clock.now() + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_create_draft(self, item_service, seller):
        item = await item_service.create(seller.user_id, _create_data(publish=False))

        assert item.status is ItemStatus.DRAFT

    @pytest.mark.asyncio
    async def test_get_missing(self, item_service):
        with pytest.raises(ItemNotFound):
            await item_service.get(uuid4())


class TestListings:
    """Listing queries."""

    @pytest.mark.asyncio
    async def test_list_active_excludes_expired_and_drafts(self, item_service, make_item, clock):
        running = await make_item()
        await make_item(start_date=clock.now() - timedelta(days=3))
        await make_item(status=ItemStatus.DRAFT)

        active = await item_service.list_active()

        assert [i.item_id for i in active] == [running.item_id]

    @pytest.mark.asyncio
    async def test_list_items_by_status(self, item_service, make_item):
        await make_item()
        draft = await make_item(status=ItemStatus.DRAFT)

        items, total = await item_service.list_items(status=ItemStatus.DRAFT)

        assert total == 1
        assert items[0].item_id == draft.item_id

    @pytest.mark.asyncio
    async def test_list_by_seller_with_bid_counts(
        self, item_service, bid_service, make_item, seller
    ):
        bid_on = await make_item()
        untouched = await make_item()
        await make_item(seller_id=uuid4())
        await bid_service.place_bid(bid_on.item_id, uuid4(), Decimal("11"))
        await bid_service.place_bid(bid_on.item_id, uuid4(), Decimal("12"))

        listings = dict(
            (item.item_id, count) for item, count in await item_service.list_by_seller(seller.user_id)
        )

        assert listings == {bid_on.item_id: 2, untouched.item_id: 0}


class TestUpdateItem:
    """Descriptive updates and duration changes."""

    @pytest.mark.asyncio
    async def test_update_details(self, item_service, make_item, seller):
        item = await make_item()

        updated = await item_service.update(
            item.item_id,
            seller,
            ItemUpdate(title="Leica M3", item_condition=ItemCondition.EXCELLENT),
        )

        assert updated.title == "Leica M3"
        assert updated.item_condition == "excellent"
        assert updated.description == item.description

    @pytest.mark.asyncio
    async def test_change_duration_before_first_bid(self, item_service, make_item, seller):
        item = await make_item()

        updated = await item_service.update(item.item_id, seller, ItemUpdate(auction_duration_days=5))

        assert updated.auction_duration_days == 5
        assert updated.end_date == item.start_date + timedelta(days=5)

    @pytest.mark.asyncio
    async def test_change_duration_after_bid_rejected(
        self, item_service, bid_service, make_item, seller, item_repo
    ):
        item = await make_item()
        await bid_service.place_bid(item.item_id, uuid4(), Decimal("11"))

        with pytest.raises(UpdateNotAllowed):
            await item_service.update(item.item_id, seller, ItemUpdate(auction_duration_days=5))

        assert (await item_repo.get(item.item_id)).end_date == item.end_date

    @pytest.mark.asyncio
    async def test_same_duration_after_bid_is_ignored(
        self, item_service, bid_service, make_item, seller
    ):
        item = await make_item()
        await bid_service.place_bid(item.item_id, uuid4(), Decimal("11"))

        updated = await item_service.update(
            item.item_id, seller, ItemUpdate(title="Renamed", auction_duration_days=1)
        )

        assert updated.title == "Renamed"

    @pytest.mark.asyncio
    async def test_update_ended_rejected_for_seller(self, item_service, make_item, seller):
        item = await make_item(status=ItemStatus.ENDED)

        with pytest.raises(UpdateNotAllowed):
            await item_service.update(item.item_id, seller, ItemUpdate(title="Too late"))

    @pytest.mark.asyncio
    async def test_update_ended_allowed_for_admin(self, item_service, make_item, admin):
        item = await make_item(status=ItemStatus.ENDED)

        updated = await item_service.update(item.item_id, admin, ItemUpdate(title="Moderated"))

        assert updated.title == "Moderated"

    @pytest.mark.asyncio
    async def test_update_by_stranger_denied(self, item_service, make_item):
        item = await make_item()

        with pytest.raises(AccessDenied):
            await item_service.update(
                item.item_id, Principal(user_id=uuid4()), ItemUpdate(title="Mine now")
            )


class TestStatusTransitions:
    """Publish, cancel and close."""

    @pytest.mark.asyncio
    async def test_publish_restarts_clock(self, item_service, make_item, seller, clock):
        item = await make_item(status=ItemStatus.DRAFT, auction_duration_days=3)
        clock.advance(timedelta(days=10))

        published = await item_service.publish(item.item_id, seller)

        assert published.status is ItemStatus.ACTIVE
        assert published.start_date == clock.now()
        assert published.end_date == clock.now() + timedelta(days=3)

    @pytest.mark.asyncio
    async def test_publish_active_rejected(self, item_service, make_item, seller):
        item = await make_item()

        with pytest.raises(InvalidTransition):
            await item_service.publish(item.item_id, seller)

    @pytest.mark.asyncio
    async def test_cancel_active_with_bids(self, item_service, bid_service, make_item, seller):
        item = await make_item()
        await bid_service.place_bid(item.item_id, uuid4(), Decimal("11"))

        cancelled = await item_service.cancel(item.item_id, seller)

        assert cancelled.status is ItemStatus.CANCELLED
        assert cancelled.current_bid == Decimal("11")

    @pytest.mark.asyncio
    async def test_cancel_draft(self, item_service, make_item, seller):
        item = await make_item(status=ItemStatus.DRAFT)

        cancelled = await item_service.cancel(item.item_id, seller)

        assert cancelled.status is ItemStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_expired_rejected_and_expiry_persisted(
        self, item_service, make_item, seller, clock, item_repo
    ):
        item = await make_item()
        clock.set(item.end_date + timedelta(minutes=1))

        with pytest.raises(InvalidTransition):
            await item_service.cancel(item.item_id, seller)

        assert (await item_repo.get(item.item_id)).status is ItemStatus.ENDED

    @pytest.mark.asyncio
    async def test_cancel_twice_rejected(self, item_service, make_item, seller):
        item = await make_item()
        await item_service.cancel(item.item_id, seller)

        with pytest.raises(InvalidTransition):
            await item_service.cancel(item.item_id, seller)

    @pytest.mark.asyncio
    async def test_cancel_by_stranger_denied(self, item_service, make_item):
        item = await make_item()

        with pytest.raises(AccessDenied):
            await item_service.cancel(item.item_id, Principal(user_id=uuid4()))

    @pytest.mark.asyncio
    async def test_admin_can_cancel_any_item(self, item_service, make_item, admin):
        item = await make_item()

        cancelled = await item_service.cancel(item.item_id, admin)

        assert cancelled.status is ItemStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_close_running_auction(self, item_service, make_item, seller):
        item = await make_item()

        closed = await item_service.close(item.item_id, seller)

        assert closed.status is ItemStatus.ENDED

    @pytest.mark.asyncio
    async def test_close_expired_auction_persists(self, item_service, make_item, seller, clock):
        item = await make_item()
        clock.set(item.end_date)

        closed = await item_service.close(item.item_id, seller)

        assert closed.status is ItemStatus.ENDED

    @pytest.mark.asyncio
    async def test_close_draft_rejected(self, item_service, make_item, seller):
        item = await make_item(status=ItemStatus.DRAFT)

        with pytest.raises(InvalidTransition):
            await item_service.close(item.item_id, seller)

    @pytest.mark.asyncio
    async def test_lost_race_reports_fresh_status(self, item_service, make_item, seller, item_repo):
        """A concurrent status change makes the conditional transition fail."""
        item = await make_item()
        real_transition = item_repo.conditional_transition_status

        async def sweep_first(item_id, expected_status, new_status, **kwargs):
            await real_transition(item_id, ItemStatus.ACTIVE, ItemStatus.ENDED)
            return await real_transition(item_id, expected_status, new_status, **kwargs)

        item_repo.conditional_transition_status = sweep_first

        with pytest.raises(InvalidTransition) as exc_info:
            await item_service.cancel(item.item_id, seller)

        assert exc_info.value.current == "ended"
        assert exc_info.value.target == "cancelled"


class TestDeleteItem:
    """Deleting listings without bids."""

    @pytest.mark.asyncio
    async def test_delete_draft(self, item_service, make_item, seller, item_repo):
        item = await make_item(status=ItemStatus.DRAFT)

        await item_service.delete(item.item_id, seller)

        assert await item_repo.get(item.item_id) is None

    @pytest.mark.asyncio
    async def test_admin_deletes_active_item_without_bids(self, item_service, make_item, admin, item_repo):
        item = await make_item()

        await item_service.delete(item.item_id, admin)

        assert await item_repo.get(item.item_id) is None

    @pytest.mark.asyncio
    async def test_delete_with_bids_rejected(
        self, item_service, bid_service, make_item, seller, item_repo, ledger
    ):
        item = await make_item()
        await bid_service.place_bid(item.item_id, uuid4(), Decimal("10"))

        with pytest.raises(DeleteNotAllowed):
            await item_service.delete(item.item_id, seller)

        assert await item_repo.get(item.item_id) is not None
        assert len(await ledger.list_by_item(item.item_id)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_bid_wins_over_delete(
        self, item_service, bid_service, make_item, seller, item_repo
    ):
        item = await make_item()
        real_delete = item_repo.delete_if_unbid

        async def bid_lands_first(item_id):
            await bid_service.place_bid(item_id, uuid4(), Decimal("10"))
            return await real_delete(item_id)

        item_repo.delete_if_unbid = bid_lands_first

        with pytest.raises(DeleteNotAllowed):
            await item_service.delete(item.item_id, seller)

        assert (await item_repo.get(item.item_id)).current_bid == Decimal("10")

    @pytest.mark.asyncio
    async def test_delete_by_stranger_denied(self, item_service, make_item):
        item = await make_item()

        with pytest.raises(AccessDenied):
            await item_service.delete(item.item_id, Principal(user_id=uuid4()))
