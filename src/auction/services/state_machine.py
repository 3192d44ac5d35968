"""Auction lifecycle state machine.

Pure functions only. ``classify`` is the single place that decides whether an
item is biddable at a given instant; every read site calls it instead of
comparing dates itself.
"""

from datetime import datetime

from auction.models.item import ItemStatus
from auction.repositories.base import ItemSnapshot
from auction.services.clock import ensure_utc
from auction.services.exceptions import InvalidTransition

TERMINAL_STATES = frozenset({ItemStatus.ENDED, ItemStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.DRAFT: frozenset({ItemStatus.ACTIVE, ItemStatus.CANCELLED}),
    ItemStatus.ACTIVE: frozenset({ItemStatus.ENDED, ItemStatus.CANCELLED}),
    ItemStatus.ENDED: frozenset(),
    ItemStatus.CANCELLED: frozenset(),
}


def classify(item: ItemSnapshot, now: datetime) -> ItemStatus:
    """Return the effective state of ``item`` at ``now``.

    An active item whose end date has been reached is effectively ended even
    if storage has not caught up yet; the caller decides whether to persist
    that transition.
    """
    if item.status in TERMINAL_STATES:
        return item.status
    if item.status is ItemStatus.ACTIVE and ensure_utc(now) >= item.end_date:
        return ItemStatus.ENDED
    return item.status


def is_biddable(item: ItemSnapshot, now: datetime) -> bool:
    return classify(item, now) is ItemStatus.ACTIVE


def is_lazily_expired(item: ItemSnapshot, now: datetime) -> bool:
    """True when storage still says active but the end date has passed."""
    return item.status is ItemStatus.ACTIVE and classify(item, now) is ItemStatus.ENDED


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: ItemStatus, target: ItemStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)
