"""Business logic services."""

from auction.services.redis_service import RedisService

__all__ = [
    "RedisService",
]
