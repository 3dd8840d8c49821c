"""Storefront checkout against the real API (DRF RequestsClient).

Scenario C: with no reachable store the checkout still yields an order,
held locally; reconciliation submits it once the store is back.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from rest_framework.test import RequestsClient
from rest_framework_simplejwt.tokens import AccessToken

from modules.core.gateway import (
    CandidateFailure,
    FailureKind,
    StoreConnection,
    Unavailable,
    store_gateway,
)
from modules.orders.models import Order
from storefront.api import OrdersApiClient
from storefront.cache import LocalOrderCache
from storefront.checkout import CheckoutService
from storefront.models import LOCAL_ID_PREFIX, CheckoutRequest, DeliveryAddress

pytestmark = pytest.mark.integration


@pytest.fixture()
def store_switch(monkeypatch):
    """Flip the gateway between the test database and degraded mode."""

    def _set(available):
        if available:
            result = StoreConnection(handle="default", candidate_name="primary")
        else:
            result = Unavailable(
                failures=(CandidateFailure("primary", FailureKind.NETWORK_UNREACHABLE, "refused"),)
            )
        monkeypatch.setattr(store_gateway, "get_store", lambda: result)

    return _set


@pytest.fixture()
def checkout_service(customer_user, tmp_path):
    client = OrdersApiClient(
        "http://testserver",
        token=str(AccessToken.for_user(customer_user)),
        session=RequestsClient(),
    )
    return CheckoutService(client, LocalOrderCache(tmp_path / "pending.json"))


@pytest.fixture()
def checkout_request(product):
    return CheckoutRequest(
        customer_name="Ada Obi",
        customer_email="ada@example.com",
        customer_phone="+2348090000001",
        product_id=product.id,
        product_name=product.name,
        unit=product.unit,
        unit_price=product.price,
        quantity=2,
        delivery_address=DeliveryAddress(address="12 Market Road", city="Lagos", state="Lagos"),
    )


class TestScenarioC:
    def test_checkout_with_store_available_creates_server_order(self, checkout_service, checkout_request):
        result = checkout_service.checkout(checkout_request)

        assert result.is_local is False
        order = Order.objects.get(pk=result.order_id)
        assert order.total_amount == result.total == Decimal("9500.00")

    def test_unreachable_store_yields_local_order_with_identical_totals(
        self, checkout_service, checkout_request, store_switch
    ):
        store_switch(False)

        result = checkout_service.checkout(checkout_request)

        assert result.is_local is True
        assert result.order_id.startswith(LOCAL_ID_PREFIX)
        assert result.total == Decimal("9500.00")
        (local,) = checkout_service.pending()
        assert local.local_id == result.order_id
        assert local.payload.quantity == 2
        assert local.payload.product_id == checkout_request.product_id
        assert Order.objects.count() == 0

    def test_reconciliation_after_recovery_is_duplicate_safe(
        self, checkout_service, checkout_request, store_switch, product
    ):
        store_switch(False)
        local = checkout_service.checkout(checkout_request)
        store_switch(True)

        first = checkout_service.reconcile_pending()

        order = Order.objects.get()
        assert first.reconciled == {local.order_id: str(order.id)}
        assert order.idempotency_key == local.order_id
        assert order.total_amount == local.total
        assert checkout_service.pending() == []

        # A resubmission of the same local id (e.g. a crash before the
        # local record was dropped) returns the same server order.
        replay = checkout_service._client.create_order(
            checkout_request.api_payload(), idempotency_key=local.order_id
        )
        assert replay["id"] == str(order.id)
        assert Order.objects.count() == 1
        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_reconciliation_stops_while_still_degraded(
        self, checkout_service, checkout_request, store_switch
    ):
        store_switch(False)
        local = checkout_service.checkout(checkout_request)

        report = checkout_service.reconcile_pending()

        assert report.remaining == [local.order_id]
        assert len(checkout_service.pending()) == 1
