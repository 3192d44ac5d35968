"""Seed data script for development and load testing.

Creates:
- demo sellers, each owning a few active listings and one draft
- demo bidders, with a couple of opening bids placed through BidService
- bearer tokens for every demo user (printed, or written to TOKENS_FILE)

Users live in the external identity service, so the demo users here are just
UUIDs with signed tokens.

Environment Variables:
    SELLER_COUNT: Number of demo sellers (default: 3)
    BIDDER_COUNT: Number of demo bidders (default: 20)
    ITEMS_PER_SELLER: Active listings per seller (default: 4)
    TOKENS_FILE: Write "<role> <user_id> <token>" lines here instead of stdout

Usage:
    python -m scripts.reset_db
    python -m scripts.seed_data
    SELLER_COUNT=10 BIDDER_COUNT=500 TOKENS_FILE=tokens.txt python -m scripts.seed_data
"""

import asyncio
import os
import random
import uuid
from datetime import timedelta
from decimal import Decimal

from auction.core.database import async_session_maker, engine
from auction.core.security import create_access_token
from auction.models.item import ItemCondition
from auction.repositories.bids import SqlAlchemyBidLedger
from auction.repositories.items import SqlAlchemyItemRepository
from auction.schemas.item import ItemCreate
from auction.services.bid_service import BidService, minimum_acceptable_bid
from auction.services.exceptions import AuctionError
from auction.services.item_service import ItemService

SELLER_COUNT = int(os.getenv("SELLER_COUNT", "3"))
BIDDER_COUNT = int(os.getenv("BIDDER_COUNT", "20"))
ITEMS_PER_SELLER = int(os.getenv("ITEMS_PER_SELLER", "4"))
TOKENS_FILE = os.getenv("TOKENS_FILE")

TITLES = [
    "Vintage film camera",
    "Mechanical keyboard",
    "Signed vinyl record",
    "Road bike",
    "Mid-century armchair",
    "Fountain pen set",
    "Retro game console",
    "Hand-thrown teapot",
]


def issue_tokens(user_ids: list[uuid.UUID], role: str) -> list[tuple[str, uuid.UUID, str]]:
    # Long-lived so load tests do not expire mid-run
    return [
        (role, user_id, create_access_token(
            {"sub": str(user_id), "role": role}, expires_delta=timedelta(days=7)
        ))
        for user_id in user_ids
    ]


async def seed_items(item_service: ItemService, sellers: list[uuid.UUID]) -> list:
    """Create active listings plus one draft per seller."""
    print("Seeding items...")
    rng = random.Random(42)
    items = []

    for seller_id in sellers:
        for _ in range(ITEMS_PER_SELLER):
            starting_price = Decimal(rng.randrange(5, 500))
            item = await item_service.create(
                seller_id,
                ItemCreate(
                    title=rng.choice(TITLES),
                    description="Demo listing",
                    item_condition=rng.choice(list(ItemCondition)),
                    starting_price=starting_price,
                    min_increment=Decimal(rng.choice([1, 2, 5, 10])),
                    reserve_price=starting_price * 2,
                    auction_duration_days=rng.randint(1, 7),
                ),
            )
            items.append(item)

        await item_service.create(
            seller_id,
            ItemCreate(
                title="Unpublished draft",
                starting_price=Decimal("10"),
                auction_duration_days=3,
                publish=False,
            ),
        )

    print(f"  Created {len(items)} active items and {len(sellers)} drafts")
    return items


async def seed_bids(bid_service: BidService, items: list, bidders: list[uuid.UUID]) -> None:
    """Place two opening bids on half of the listings."""
    print("Seeding bids...")
    rng = random.Random(7)
    placed = 0

    for item in items[::2]:
        for bidder_id in rng.sample(bidders, k=min(2, len(bidders))):
            current = await bid_service.items.get(item.item_id)
            try:
                await bid_service.place_bid(
                    item.item_id, bidder_id, minimum_acceptable_bid(current)
                )
                placed += 1
            except AuctionError as e:
                print(f"  Skipped bid on {item.item_id}: {e.message}")

    print(f"  Placed {placed} bids")


def write_tokens(tokens: list[tuple[str, uuid.UUID, str]]) -> None:
    if TOKENS_FILE:
        with open(TOKENS_FILE, "w") as f:
            for role, user_id, token in tokens:
                f.write(f"{role} {user_id} {token}\n")
        print(f"\nWrote {len(tokens)} tokens to {TOKENS_FILE}")
        return

    print("\nDemo tokens:")
    for role, user_id, token in tokens[:5]:
        print(f"  {role:<6} {user_id}  {token}")
    if len(tokens) > 5:
        print(f"  ... {len(tokens) - 5} more (set TOKENS_FILE to save them all)")


async def main():
    print("=" * 60)
    print("Seeding auction data")
    print("=" * 60)

    sellers = [uuid.uuid4() for _ in range(SELLER_COUNT)]
    bidders = [uuid.uuid4() for _ in range(BIDDER_COUNT)]
    admin = uuid.uuid4()

    async with async_session_maker() as session:
        items_repo = SqlAlchemyItemRepository(session)
        ledger = SqlAlchemyBidLedger(session)

        items = await seed_items(ItemService(items_repo, ledger), sellers)
        await seed_bids(BidService(items_repo, ledger), items, bidders)

    write_tokens(
        issue_tokens([admin], "admin")
        + issue_tokens(sellers, "user")
        + issue_tokens(bidders, "user")
    )

    print("\n" + "=" * 60)
    print("Seeding complete!")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
