"""API dependencies for authentication, storage and services."""

import hashlib
import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from auction.core.config import settings
from auction.core.database import get_db
from auction.core.redis import get_redis
from auction.core.security import Principal, decode_access_token
from auction.repositories.base import BidLedger, ItemRepository
from auction.repositories.bids import SqlAlchemyBidLedger
from auction.repositories.items import SqlAlchemyItemRepository
from auction.services.bid_service import BidService
from auction.services.closing_service import ClosingService
from auction.services.item_service import ItemService
from auction.services.redis_service import RedisService

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]


async def _decode_with_cache(token: str, redis_service: RedisService) -> dict | None:
    """Decode a JWT, caching the payload briefly to skip repeated verification.

    The cache is an optimisation only; Redis errors fall back to decoding.
    """
    digest = hashlib.sha256(token.encode()).hexdigest()[:16]
    try:
        cached = await redis_service.get_cached_token_payload(digest)
    except RedisError as e:
        logger.warning(f"Token cache unavailable: {e}")
        return decode_access_token(token)

    if cached:
        return cached

    payload = decode_access_token(token)
    if payload:
        try:
            await redis_service.cache_token_payload(digest, payload, settings.JWT_CACHE_TTL)
        except RedisError as e:
            logger.warning(f"Failed to cache token payload: {e}")
    return payload


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    redis_service: RedisServiceDep,
) -> Principal:
    """Resolve the authenticated caller from the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid or carries no usable subject
    """
    payload = await _decode_with_cache(credentials.credentials, redis_service)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(payload.get("sub", ""))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(user_id=user_id, role=payload.get("role", "user"))


async def get_current_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Get current caller and verify they are an admin."""
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_current_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_item_repository(db: DbSession) -> ItemRepository:
    return SqlAlchemyItemRepository(db)


async def get_bid_ledger(db: DbSession) -> BidLedger:
    return SqlAlchemyBidLedger(db)


ItemRepositoryDep = Annotated[ItemRepository, Depends(get_item_repository)]
BidLedgerDep = Annotated[BidLedger, Depends(get_bid_ledger)]


async def get_bid_service(items: ItemRepositoryDep, ledger: BidLedgerDep) -> BidService:
    """Get BidService instance with injected repositories."""
    return BidService(items, ledger)


async def get_item_service(items: ItemRepositoryDep, ledger: BidLedgerDep) -> ItemService:
    return ItemService(items, ledger)


async def get_closing_service(
    items: ItemRepositoryDep, redis_service: RedisServiceDep
) -> ClosingService:
    return ClosingService(items, redis_service)


BidServiceDep = Annotated[BidService, Depends(get_bid_service)]
ItemServiceDep = Annotated[ItemService, Depends(get_item_service)]
ClosingServiceDep = Annotated[ClosingService, Depends(get_closing_service)]
