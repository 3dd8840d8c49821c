from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from modules.core.gateway import StoreConnection, store_gateway
from modules.farmers.models import Farmer
from modules.orders.dtos import CreateOrderDTO, DeliveryAddressDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository
from shared.infrastructure.bus import event_bus

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def primary_store(monkeypatch):
    """Pin the persistence gateway to the test database."""
    selected = StoreConnection(handle="default", candidate_name="primary")
    monkeypatch.setattr(store_gateway, "get_store", lambda: selected)
    return selected


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="marketplace-admin", password="adminpass123", is_staff=True
    )


@pytest.fixture()
def customer_user():
    return User.objects.create_user(
        username="ada", email="ada@example.com", password="customerpass123"
    )


@pytest.fixture()
def admin_api(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture()
def customer_api(customer_user):
    client = APIClient()
    client.force_authenticate(user=customer_user)
    return client


@pytest.fixture()
def verified_farmer():
    return Farmer.objects.create(
        name="Adaeze Okafor",
        email="adaeze@example.com",
        phone="+2348030000001",
        farm_name="Green Valley Farms",
        location="Enugu",
        is_verified=True,
        verification_date=timezone.now(),
    )


@pytest.fixture()
def unverified_farmer():
    return Farmer.objects.create(
        name="Chidi Nwosu",
        email="chidi@example.com",
        phone="+2348030000004",
        farm_name="Delta Fisheries",
        location="Delta",
    )


@pytest.fixture()
def product(verified_farmer):
    return Product.objects.create(
        farmer=verified_farmer,
        name="Tomatoes",
        unit="basket",
        price=Decimal("4500.00"),
        stock_quantity=10,
        status=ProductStatus.ACTIVE,
    )


@pytest.fixture()
def order_payload(product):
    return {
        "customer_name": "Ada Obi",
        "customer_email": "ada@example.com",
        "customer_phone": "+2348090000001",
        "product_id": str(product.id),
        "quantity": 2,
        "delivery_address": {
            "address": "12 Market Road",
            "city": "Lagos",
            "state": "Lagos",
        },
        "payment_method": "cash_on_delivery",
    }


@pytest.fixture()
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        event_bus=event_bus,
    )


@pytest.fixture()
def place_order(order_service, product):
    """Factory placing an order for ``product`` through the service."""

    def _place(quantity=2, actor=None, idempotency_key=None, **overrides):
        dto = CreateOrderDTO(
            customer_name=overrides.get("customer_name", "Ada Obi"),
            customer_email=overrides.get("customer_email", "ada@example.com"),
            customer_phone=overrides.get("customer_phone", "+2348090000001"),
            product_id=overrides.get("product_id", product.id),
            quantity=quantity,
            delivery_address=DeliveryAddressDTO(
                address="12 Market Road", city="Lagos", state="Lagos"
            ),
            idempotency_key=idempotency_key,
        )
        order, _ = order_service.create_order(dto, actor=actor)
        return order

    return _place
