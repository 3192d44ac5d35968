"""Reset database to empty state.

Creates the ``items`` and ``bids`` tables if they are missing, then clears all
rows from them. Also clears Redis (sweep lock, cached token payloads, rate
limit windows).

Usage:
    python -m scripts.reset_db
"""

import asyncio

from sqlalchemy import text

from auction.core.database import Base, async_session_maker, engine
from auction.core.redis import close_redis, get_redis
from auction.models import Bid, Item  # noqa: F401  (registers tables on Base.metadata)


async def reset_database():
    """Create missing tables and clear all data."""
    print("=" * 60)
    print("Resetting database to empty state...")
    print("=" * 60)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        # Bids reference items
        for table in ["bids", "items"]:
            result = await session.execute(text(f"DELETE FROM {table}"))
            print(f"  Deleted {result.rowcount} rows from {table}")

        await session.commit()
        print("\nDatabase cleared successfully!")


async def reset_redis():
    """Clear all Redis data."""
    print("\nResetting Redis...")

    try:
        redis = await get_redis()
        await redis.flushdb()
        print("  Redis flushed successfully!")
    except Exception as e:
        print(f"  Warning: Could not clear Redis: {e}")
        print("  (This is OK if Redis is not running locally)")
    finally:
        await close_redis()


async def main():
    await reset_database()
    await reset_redis()

    print("\n" + "=" * 60)
    print("Reset complete!")
    print("=" * 60)
    print("\nTo seed demo listings, run:")
    print("  python -m scripts.seed_data")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
