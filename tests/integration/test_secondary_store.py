"""Requests served from the secondary store while the primary is down.

The gateway is pinned to the ``secondary`` alias and every cursor on
``default`` raises, so any read that still reaches the primary fails
the request.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import OperationalError, connections
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from modules.core.gateway import StoreConnection, store_gateway
from modules.farmers.models import Farmer
from modules.orders.models import Order
from modules.products.models import Product, ProductStatus

pytestmark = [
    pytest.mark.integration,
    pytest.mark.django_db(databases=["default", "secondary"]),
]

URL = "/api/v1/orders/"
User = get_user_model()


def _refuse(*args, **kwargs):
    raise OperationalError("could not connect to server: Connection refused")


@pytest.fixture()
def secondary_store(monkeypatch):
    selected = StoreConnection(handle="secondary", candidate_name="secondary")
    monkeypatch.setattr(store_gateway, "get_store", lambda: selected)
    return selected


@pytest.fixture()
def secondary_user():
    return User.objects.db_manager("secondary").create_user(
        username="ada", email="ada@example.com", password="customerpass123"
    )


@pytest.fixture()
def secondary_product():
    farmer = Farmer.objects.using("secondary").create(
        name="Adaeze Okafor",
        email="adaeze@example.com",
        phone="+2348030000001",
        farm_name="Green Valley Farms",
        location="Enugu",
        is_verified=True,
        verification_date=timezone.now(),
    )
    return Product.objects.using("secondary").create(
        farmer=farmer,
        name="Tomatoes",
        unit="basket",
        price=Decimal("4500.00"),
        stock_quantity=10,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def token_api(secondary_user):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(secondary_user)}")
    return client


@pytest.fixture()
def primary_down(monkeypatch):
    monkeypatch.setattr(connections["default"], "cursor", _refuse)


class TestSecondaryStore:
    def test_authenticated_listing_is_served(self, secondary_store, token_api, primary_down):
        response = token_api.get(URL)

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_checkout_lands_on_secondary(
        self, secondary_store, token_api, secondary_user, secondary_product, primary_down
    ):
        payload = {
            "customer_name": "Ada Obi",
            "customer_email": "ada@example.com",
            "customer_phone": "+2348090000001",
            "product_id": str(secondary_product.id),
            "quantity": 2,
            "delivery_address": {"address": "12 Market Road", "city": "Lagos", "state": "Lagos"},
        }

        response = token_api.post(URL, payload, format="json")

        assert response.status_code == 201
        order = Order.objects.using("secondary").get(pk=response.json()["id"])
        assert order.customer_id == secondary_user.pk
        assert token_api.get(URL).json()["count"] == 1

    def test_user_lookup_failure_is_503(self, secondary_store, token_api, monkeypatch):
        monkeypatch.setattr(connections["secondary"], "cursor", _refuse)

        response = token_api.get(URL)

        assert response.status_code == 503
        assert response.json()["code"] == "store_unavailable"

    def test_unknown_user_on_selected_store_is_401(self, secondary_store):
        elsewhere = User.objects.create_user(username="only-on-primary", password="pass12345")
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(elsewhere)}")

        assert client.get(URL).status_code == 401
