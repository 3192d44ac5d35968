"""HTTP-level tests with in-memory storage behind the FastAPI dependencies."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from auction.api.deps import (
    get_bid_service,
    get_closing_service,
    get_item_service,
    get_redis_service,
)
from auction.core.security import create_access_token
from auction.main import app
from auction.services.closing_service import ClosingService
from auction.services.redis_service import RedisService


def _auth(user_id, role: str = "user") -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(bid_service, item_service, item_repo, mock_redis):
    app.dependency_overrides[get_bid_service] = lambda: bid_service
    app.dependency_overrides[get_item_service] = lambda: item_service
    app.dependency_overrides[get_closing_service] = lambda: ClosingService(item_repo)
    app.dependency_overrides[get_redis_service] = lambda: RedisService(mock_redis)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seller_headers(seller):
    return _auth(seller.user_id)


def _create(client, headers, **overrides) -> dict:
    body = {"title": "Film camera", "starting_price": "10.00", "auction_duration_days": 1}
    body.update(overrides)
    response = client.post("/api/v1/items", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestItemEndpoints:
    """Listing routes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_create_and_get(self, client, seller, seller_headers):
        created = _create(client, seller_headers)

        response = client.get(f"/api/v1/items/{created['item_id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["seller_id"] == str(seller.user_id)
        assert data["status"] == "active"
        assert Decimal(data["minimum_bid"]) == Decimal("10.00")
        assert data["reserve_met"] is False

    def test_create_requires_auth(self, client):
        response = client.post(
            "/api/v1/items", json={"title": "x", "starting_price": "1", "auction_duration_days": 1}
        )

        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.post(
            "/api/v1/items",
            json={"title": "x", "starting_price": "1", "auction_duration_days": 1},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    def test_create_rejects_zero_increment(self, client, seller_headers):
        response = client.post(
            "/api/v1/items",
            json={
                "title": "x",
                "starting_price": "1",
                "min_increment": "0",
                "auction_duration_days": 1,
            },
            headers=seller_headers,
        )

        assert response.status_code == 422

    def test_get_missing_item(self, client):
        response = client.get(f"/api/v1/items/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "ITEM_NOT_FOUND"

    def test_expired_item_reported_as_ended(self, client, seller_headers, clock):
        created = _create(client, seller_headers)
        clock.advance(timedelta(days=2))

        data = client.get(f"/api/v1/items/{created['item_id']}").json()

        assert data["status"] == "ended"
        assert data["minimum_bid"] is None

    def test_cancel_by_other_user_forbidden(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.patch(
            f"/api/v1/items/{created['item_id']}/cancel", headers=_auth(uuid4())
        )

        assert response.status_code == 403

    def test_invalid_transition_is_bad_request(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.post(
            f"/api/v1/items/{created['item_id']}/publish", headers=seller_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_TRANSITION"

    def test_mine_includes_bid_counts(self, client, seller_headers):
        created = _create(client, seller_headers)
        client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "11"},
            headers=_auth(uuid4()),
        )

        data = client.get("/api/v1/items/mine", headers=seller_headers).json()

        assert data["total"] == 1
        assert data["items"][0]["bid_count"] == 1

    def test_close_expired_requires_admin(self, client, seller_headers, admin, clock):
        created = _create(client, seller_headers)
        clock.advance(timedelta(days=2))

        assert client.post("/api/v1/items/close-expired", headers=seller_headers).status_code == 403

        response = client.post("/api/v1/items/close-expired", headers=_auth(admin.user_id, "admin"))
        assert response.status_code == 200
        assert response.json() == {"closed": [created["item_id"]], "total": 1}


class TestBidEndpoints:
    """Bid placement and history routes."""

    def test_place_bid(self, client, seller_headers):
        created = _create(client, seller_headers)
        bidder = uuid4()

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "12.50"},
            headers=_auth(bidder),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["bid"]["bidder_id"] == str(bidder)
        assert Decimal(data["item"]["current_bid"]) == Decimal("12.50")
        assert data["item"]["highest_bidder_id"] == str(bidder)
        assert Decimal(data["item"]["minimum_bid"]) == Decimal("13.50")

    def test_bid_too_low_reports_minimum(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "9.99"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "BID_TOO_LOW"
        assert Decimal(detail["minimum"]) == Decimal("10")

    def test_self_bid(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "50"},
            headers=seller_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "SELF_BID"

    def test_bid_on_missing_item(self, client):
        response = client.post(
            "/api/v1/bids", json={"item_id": str(uuid4()), "amount": "50"}, headers=_auth(uuid4())
        )

        assert response.status_code == 404

    def test_bid_after_end(self, client, seller_headers, clock):
        created = _create(client, seller_headers)
        clock.advance(timedelta(days=1))

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "50"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "AUCTION_CLOSED"

    def test_bid_on_draft(self, client, seller_headers):
        created = _create(client, seller_headers, publish=False)

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "50"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "AUCTION_NOT_ACTIVE"

    def test_non_positive_amount_rejected(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "0"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 422

    def test_history_and_highest(self, client, seller_headers, clock):
        created = _create(client, seller_headers)
        item_id = created["item_id"]
        for amount in ("11", "15", "20"):
            client.post(
                "/api/v1/bids", json={"item_id": item_id, "amount": amount}, headers=_auth(uuid4())
            )
            clock.advance(timedelta(seconds=1))

        newest = client.get(f"/api/v1/bids/item/{item_id}").json()
        oldest = client.get(f"/api/v1/bids/item/{item_id}", params={"order": "asc"}).json()
        highest = client.get(f"/api/v1/bids/item/{item_id}/highest").json()

        assert newest["total"] == 3
        assert [Decimal(b["amount"]) for b in newest["bids"]] == [20, 15, 11]
        assert [Decimal(b["amount"]) for b in oldest["bids"]] == [11, 15, 20]
        assert Decimal(highest["bid"]["amount"]) == Decimal("20")

    def test_highest_before_first_bid(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.get(f"/api/v1/bids/item/{created['item_id']}/highest")

        assert response.json() == {"bid": None}

    def test_my_bids(self, client, seller_headers):
        created = _create(client, seller_headers)
        bidder = uuid4()
        client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "11"},
            headers=_auth(bidder),
        )

        data = client.get("/api/v1/bids/me", headers=_auth(bidder)).json()

        assert data["total"] == 1
        assert data["bids"][0]["item_id"] == created["item_id"]

    def test_contention_maps_to_conflict(self, client, seller_headers, item_repo):
        created = _create(client, seller_headers)

        async def always_conflict(*args, **kwargs):
            return None

        item_repo.conditional_update_bid = always_conflict

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "11"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "CONTENTION"

    def test_ledger_inconsistency_maps_to_server_error(self, client, seller_headers, ledger):
        created = _create(client, seller_headers)

        async def broken_append(*args, **kwargs):
            raise RuntimeError("disk full")

        ledger.append = broken_append

        response = client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "11"},
            headers=_auth(uuid4()),
        )

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "LEDGER_INCONSISTENCY"

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert b"bids_total" in response.content


class TestDeleteItem:
    """Removing listings that never received a bid."""

    def test_seller_deletes_unbid_item(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.delete(f"/api/v1/items/{created['item_id']}", headers=seller_headers)

        assert response.status_code == 204
        assert client.get(f"/api/v1/items/{created['item_id']}").status_code == 404

    def test_item_with_bids_cannot_be_deleted(self, client, seller_headers):
        created = _create(client, seller_headers)
        client.post(
            "/api/v1/bids",
            json={"item_id": created["item_id"], "amount": "10"},
            headers=_auth(uuid4()),
        )

        response = client.delete(f"/api/v1/items/{created['item_id']}", headers=seller_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "DELETE_NOT_ALLOWED"

    def test_stranger_cannot_delete(self, client, seller_headers):
        created = _create(client, seller_headers)

        response = client.delete(f"/api/v1/items/{created['item_id']}", headers=_auth(uuid4()))

        assert response.status_code == 403
