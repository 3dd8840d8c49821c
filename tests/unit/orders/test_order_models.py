"""Unit tests for Order persistence rules: totals, numbering, immutability."""

from __future__ import annotations

import re
from decimal import Decimal

import pytest
from freezegun import freeze_time
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusHistory

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(place_order):
    return Order.objects.get(pk=place_order(quantity=3).pk)


class TestCreation:
    def test_total_is_unit_price_times_quantity_plus_delivery_fee(self, order):
        assert order.unit_price == Decimal("4500.00")
        assert order.delivery_fee == Decimal("500.00")
        assert order.total_amount == Decimal("14000.00")

    def test_order_number_format(self, order):
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", order.order_number)

    @freeze_time("2025-03-14 09:30:00")
    def test_order_number_carries_creation_date(self, place_order):
        order = place_order(quantity=1)

        assert order.order_number.startswith("ORD-20250314-")

    def test_snapshots_product_and_farmer(self, order, product):
        assert order.product_name == "Tomatoes"
        assert order.unit == "basket"
        assert order.farmer_id == product.farmer_id

    def test_starts_pending_with_creation_history_entry(self, order):
        history = list(order.status_history.all())

        assert order.status == OrderStatus.PENDING
        assert order.version == 0
        assert len(history) == 1
        assert history[0].sequence == 0
        assert history[0].old_status is None
        assert history[0].status == OrderStatus.PENDING

    def test_client_supplied_total_is_ignored(self, product, verified_farmer):
        order = Order(
            customer_name="X",
            customer_email="x@example.com",
            delivery_address="1 Road",
            delivery_city="Lagos",
            delivery_state="Lagos",
            farmer=verified_farmer,
            product=product,
            product_name=product.name,
            quantity=2,
            unit=product.unit,
            unit_price=Decimal("10.00"),
            delivery_fee=Decimal("5.00"),
            total_amount=Decimal("1.00"),
        )
        order.save()

        assert order.total_amount == Decimal("25.00")


class TestImmutability:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("customer_name", "Someone Else"),
            ("delivery_address", "99 Other Street"),
            ("quantity", 7),
            ("unit_price", Decimal("1.00")),
            ("total_amount", Decimal("1.00")),
        ],
    )
    def test_snapshot_fields_cannot_change(self, order, field, value):
        setattr(order, field, value)

        with pytest.raises(ValidationError) as excinfo:
            order.save()

        assert field in excinfo.value.message_dict

    def test_admin_notes_can_change(self, order):
        order.admin_notes = "Call before delivery"
        order.save()

        order.refresh_from_db()
        assert order.admin_notes == "Call before delivery"


class TestHistoryConstraint:
    def test_duplicate_sequence_is_rejected(self, order):
        with pytest.raises(IntegrityError):
            OrderStatusHistory.objects.create(
                order=order, sequence=0, status=OrderStatus.PENDING
            )
