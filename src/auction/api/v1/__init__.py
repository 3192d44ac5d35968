"""API v1 routers."""

from auction.api.v1 import bids, items

__all__ = ["bids", "items"]
