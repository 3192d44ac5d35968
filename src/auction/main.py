import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auction.api.v1 import bids, items
from auction.core.config import settings
from auction.core.database import async_session_maker, engine
from auction.core.redis import close_redis, get_redis
from auction.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from auction.middleware.rate_limit import RateLimitMiddleware
from auction.repositories.items import SqlAlchemyItemRepository
from auction.services.clock import SystemClock
from auction.services.closing_service import ClosingService
from auction.services.redis_service import RedisService

logger = logging.getLogger(__name__)

# Background task control
_closing_sweep_task: asyncio.Task | None = None


async def closing_sweep_loop(interval: int = settings.CLOSING_SWEEP_INTERVAL_SECONDS):
    """Background task ending expired auctions every ``interval`` seconds.

    Bids never depend on this loop (expiry is also applied lazily when an
    item is read), it only keeps stored statuses current.
    """
    clock = SystemClock()
    while True:
        try:
            async with async_session_maker() as db:
                redis = await get_redis()
                closing_service = ClosingService(SqlAlchemyItemRepository(db), RedisService(redis))

                closed = await closing_service.run_exclusive_sweep(clock.now(), lock_ttl=interval * 3)
                if closed is None:
                    logger.debug("Closing sweep skipped, another worker holds the lock")
                elif closed:
                    logger.info(f"Closing sweep ended {len(closed)} auctions")

            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("Closing sweep loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in closing sweep loop: {e}")
            await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    global _closing_sweep_task

    logger.info("Starting closing sweep...")
    _closing_sweep_task = asyncio.create_task(closing_sweep_loop())

    yield

    logger.info("Stopping background tasks")
    if _closing_sweep_task:
        _closing_sweep_task.cancel()
        try:
            await _closing_sweep_task
        except asyncio.CancelledError:
            pass

    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Auction Marketplace",
    version="1.0.0",
    description="Auction listings and bidding engine",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        user_limit=settings.RATE_LIMIT_USER,
        ip_limit=settings.RATE_LIMIT_IP,
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(items.router, prefix="/api/v1/items", tags=["items"])
app.include_router(bids.router, prefix="/api/v1/bids", tags=["bids"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.add_route("/metrics", metrics_endpoint)
