"""Integration tests for the Order API.

Covers:
- Checkout 201, idempotent replay 200, validation and catalogue errors.
- Visibility: customers see their own orders, staff see all.
- Admin status updates: legal edges, illegal edges, conflicts.
- Cancellation by the owner with stock release.
- Degraded mode: no reachable store gives 503 store_unavailable.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.core.gateway import CandidateFailure, FailureKind, Unavailable, store_gateway
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import ConcurrentConflict
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.products.models import Product

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


def _status_url(order_id):
    return f"{URL}{order_id}/status/"


@pytest.fixture()
def degraded(monkeypatch):
    failures = (
        CandidateFailure("primary", FailureKind.TIMEOUT, "timed out"),
        CandidateFailure("secondary", FailureKind.CONFIGURATION_MISSING, "No connection URL configured."),
    )
    monkeypatch.setattr(store_gateway, "get_store", lambda: Unavailable(failures=failures))


@pytest.fixture()
def placed(customer_api, order_payload):
    response = customer_api.post(URL, order_payload, format="json")
    assert response.status_code == 201
    return response.json()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_checkout_creates_pending_order(self, customer_api, order_payload, product, customer_user):
        response = customer_api.post(URL, order_payload, format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Pending"
        assert body["version"] == 0
        assert body["total_amount"] == "9500.00"
        assert body["delivery_fee"] == "500.00"
        assert body["farmer_name"] == "Green Valley Farms"
        assert body["customer_id"] == customer_user.id
        assert [h["status"] for h in body["status_history"]] == ["Pending"]
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_replay_with_same_idempotency_key(self, customer_api, order_payload, product):
        first = customer_api.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="LOCAL-1")
        second = customer_api.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="LOCAL-1")

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_requires_authentication(self, api_client, order_payload):
        assert api_client.post(URL, order_payload, format="json").status_code == 401

    @pytest.mark.parametrize(
        "change",
        [
            {"quantity": 0},
            {"customer_email": "nope"},
            {"payment_method": "barter"},
            {"delivery_address": {"address": "1 Road"}},
        ],
    )
    def test_validation_errors(self, customer_api, order_payload, change):
        response = customer_api.post(URL, {**order_payload, **change}, format="json")

        assert response.status_code == 400
        assert Order.objects.count() == 0

    def test_unknown_product_is_404(self, customer_api, order_payload):
        response = customer_api.post(URL, {**order_payload, "product_id": str(uuid4())}, format="json")
        assert response.status_code == 404

    def test_unverified_farmer_is_400(self, customer_api, order_payload, unverified_farmer):
        fish = Product.objects.create(farmer=unverified_farmer, name="Catfish", price="6000.00", stock_quantity=5)

        response = customer_api.post(URL, {**order_payload, "product_id": str(fish.id)}, format="json")

        assert response.status_code == 400
        assert "not verified" in response.json()["detail"]

    def test_insufficient_stock_is_409(self, customer_api, order_payload):
        response = customer_api.post(URL, {**order_payload, "quantity": 50}, format="json")
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


class TestReadOrders:
    def test_customer_sees_only_own_orders(self, placed, place_order, customer_api):
        place_order(customer_email="someone@example.com")

        response = customer_api.get(URL)

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["results"][0]["id"] == placed["id"]

    def test_staff_sees_all_and_filters_by_status(self, placed, place_order, admin_api):
        other = place_order()
        admin_api.put(_status_url(other.id), {"status": "Processing"}, format="json")

        everything = admin_api.get(URL).json()
        processing = admin_api.get(URL, {"status": "Processing"}).json()

        assert everything["count"] == 2
        assert [o["id"] for o in processing["results"]] == [str(other.id)]

    def test_retrieve_other_customers_order_is_404(self, place_order, customer_api):
        order = place_order()
        assert customer_api.get(f"{URL}{order.id}/").status_code == 404

    def test_retrieve_own_order(self, placed, customer_api):
        response = customer_api.get(f"{URL}{placed['id']}/")

        assert response.status_code == 200
        assert response.json()["order_number"] == placed["order_number"]

    def test_malformed_id_is_404(self, admin_api):
        assert admin_api.get(f"{URL}not-a-uuid/").status_code == 404


# ---------------------------------------------------------------------------
# Status updates
# ---------------------------------------------------------------------------


class TestUpdateStatus:
    def test_admin_moves_order_along_the_graph(self, placed, admin_api, staff_user):
        response = admin_api.put(
            _status_url(placed["id"]), {"status": "Processing", "note": "Packed today"}, format="json"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "Processing"
        assert body["version"] == 1
        assert body["admin_notes"] == "Packed today"
        last = body["status_history"][-1]
        assert (last["old_status"], last["status"]) == ("Pending", "Processing")
        assert last["updated_by"] == staff_user.username
        assert last["note"] == "Packed today"

    def test_customer_cannot_update_status(self, placed, customer_api):
        response = customer_api.put(_status_url(placed["id"]), {"status": "Processing"}, format="json")
        assert response.status_code == 403

    def test_illegal_edge_is_400_and_writes_nothing(self, placed, admin_api):
        response = admin_api.patch(_status_url(placed["id"]), {"status": "Delivered"}, format="json")

        assert response.status_code == 400
        assert "Cannot transition from Pending to Delivered" in response.json()["detail"]
        order = Order.objects.get(pk=placed["id"])
        assert order.status == OrderStatus.PENDING
        assert order.status_history.count() == 1

    def test_unknown_status_is_400(self, placed, admin_api):
        response = admin_api.put(_status_url(placed["id"]), {"status": "Lost"}, format="json")
        assert response.status_code == 400

    def test_unknown_order_is_404(self, admin_api):
        response = admin_api.put(_status_url(uuid4()), {"status": "Processing"}, format="json")
        assert response.status_code == 404

    def test_exhausted_conflicts_are_409(self, placed, admin_api, monkeypatch):
        def always_conflicts(self, order, new_status, **kwargs):
            raise ConcurrentConflict("lost")

        monkeypatch.setattr(OrderDjangoRepository, "append_status_transition", always_conflicts)

        response = admin_api.put(_status_url(placed["id"]), {"status": "Processing"}, format="json")

        assert response.status_code == 409
        assert response.json()["code"] == "concurrent_conflict"


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


class TestCancel:
    def test_owner_cancels_and_stock_is_released(self, placed, customer_api, product):
        response = customer_api.post(f"{URL}{placed['id']}/cancel/", {"reason": "Ordered twice"}, format="json")

        assert response.status_code == 200
        assert response.json()["status"] == "Cancelled"
        assert response.json()["status_history"][-1]["note"] == "Ordered twice"
        product.refresh_from_db()
        assert product.stock_quantity == 10

    def test_shipped_order_cannot_be_cancelled(self, placed, customer_api, admin_api):
        admin_api.put(_status_url(placed["id"]), {"status": "Processing"}, format="json")
        admin_api.put(_status_url(placed["id"]), {"status": "Shipped"}, format="json")

        response = customer_api.post(f"{URL}{placed['id']}/cancel/", format="json")

        assert response.status_code == 400

    def test_other_customer_cannot_cancel(self, place_order, customer_api):
        order = place_order()
        assert customer_api.post(f"{URL}{order.id}/cancel/", format="json").status_code == 404


# ---------------------------------------------------------------------------
# Degraded mode
# ---------------------------------------------------------------------------


class TestDegradedMode:
    def test_checkout_without_store_is_503(self, degraded, customer_api, order_payload):
        response = customer_api.post(URL, order_payload, format="json")

        assert response.status_code == 503
        assert response.json()["code"] == "store_unavailable"

    def test_listing_without_store_is_503(self, degraded, admin_api):
        assert admin_api.get(URL).status_code == 503
