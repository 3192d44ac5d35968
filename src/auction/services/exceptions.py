"""Domain errors raised by the bidding engine and listing services."""

from decimal import Decimal
from uuid import UUID


class AuctionError(Exception):
    """Base class for all auction domain errors."""

    code = "AUCTION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ItemNotFound(AuctionError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, item_id: UUID):
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class AuctionNotActive(AuctionError):
    """Item is a draft or has been cancelled."""

    code = "AUCTION_NOT_ACTIVE"

    def __init__(self, status: str):
        super().__init__("This auction is not active")
        self.status = status


class AuctionClosed(AuctionError):
    code = "AUCTION_CLOSED"

    def __init__(self):
        super().__init__("This auction has ended")


class SelfBid(AuctionError):
    code = "SELF_BID"

    def __init__(self):
        super().__init__("You cannot bid on your own item")


class BidTooLow(AuctionError):
    """Carries the computed minimum so the caller can retry with a valid amount."""

    code = "BID_TOO_LOW"

    def __init__(self, minimum: Decimal):
        super().__init__(f"Bid must be at least {minimum}")
        self.minimum = minimum


class Contention(AuctionError):
    """Optimistic concurrency retries exhausted. Safe to retry the whole call."""

    code = "CONTENTION"

    def __init__(self, item_id: UUID, attempts: int):
        super().__init__(
            f"Item {item_id} is being updated concurrently, gave up after {attempts} attempts"
        )
        self.item_id = item_id
        self.attempts = attempts


class LedgerInconsistency(AuctionError):
    """Item summary was committed but the ledger append failed.

    The item's current bid is authoritative; the missing ledger row must be
    reconciled from the logged details.
    """

    code = "LEDGER_INCONSISTENCY"

    def __init__(self, item_id: UUID, bidder_id: UUID, amount: Decimal):
        super().__init__(
            f"Bid of {amount} by {bidder_id} on item {item_id} was committed "
            "but could not be written to the bid ledger"
        )
        self.item_id = item_id
        self.bidder_id = bidder_id
        self.amount = amount


class AccessDenied(AuctionError):
    code = "ACCESS_DENIED"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class InvalidTransition(AuctionError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move auction from {current} to {target}")
        self.current = current
        self.target = target


class UpdateNotAllowed(AuctionError):
    code = "UPDATE_NOT_ALLOWED"


class DeleteNotAllowed(AuctionError):
    """Listings with bids stay, since the bid ledger references them."""

    code = "DELETE_NOT_ALLOWED"

    def __init__(self):
        super().__init__("Cannot delete an item that has bids")
