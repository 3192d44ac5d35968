"""Translation of domain errors into HTTP responses."""

from fastapi import HTTPException, status

from auction.services.exceptions import (
    AccessDenied,
    AuctionError,
    BidTooLow,
    Contention,
    ItemNotFound,
    LedgerInconsistency,
)


def to_http_exception(error: AuctionError) -> HTTPException:
    """Map a domain error to an HTTPException with a ``{code, message}`` detail.

    not found -> 404, access control -> 403, retryable contention -> 409,
    ledger inconsistency -> 500, every other rejection -> 400.
    """
    detail = {"code": error.code, "message": error.message}

    if isinstance(error, ItemNotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, AccessDenied):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, Contention):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, LedgerInconsistency):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        detail = {"code": error.code, "message": "Internal error while recording the bid"}
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(error, BidTooLow):
        detail["minimum"] = str(error.minimum)

    return HTTPException(status_code=status_code, detail=detail)
