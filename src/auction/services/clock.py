"""Time source used for auction expiry checks."""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (asyncpg returns aware values, tests may not)."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
