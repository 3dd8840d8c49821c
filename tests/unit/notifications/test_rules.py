"""Unit tests for the notification rule tables and template rendering."""

from __future__ import annotations

import pytest

from modules.notifications.models import Audience, Channel
from modules.notifications.rules import (
    CUSTOMER_ORDER_CANCELLED_EMAIL,
    CUSTOMER_ORDER_SHIPPED_SMS,
    FARMER_APPROVED_EMAIL,
    FARMER_NEW_ORDER_SMS,
    FARMER_ORDER_CANCELLED_SMS,
    FARMER_REJECTED_EMAIL,
    FARMER_VERIFICATION_RULES,
    ORDER_CONFIRMATION_EMAIL,
    RULES_BY_KEY,
    rules_for,
)
from modules.orders.constants import OrderStatus

pytestmark = pytest.mark.unit

ORDER = {
    "order_number": "ORD-20260101-ABC123",
    "customer_name": "Ada Obi",
    "customer_phone": "+2348090000001",
    "product_name": "Tomatoes",
    "quantity": 2,
    "unit": "basket",
    "unit_price": "NGN 4,500.00",
    "delivery_fee": "NGN 500.00",
    "total_amount": "NGN 9,500.00",
    "payment_method": "Cash on delivery",
    "delivery_address": "12 Market Road",
    "delivery_city": "Lagos",
    "delivery_state": "Lagos",
    "status": "Processing",
}


class TestRuleTable:
    @pytest.mark.parametrize(
        ("old", "new", "expected"),
        [
            (None, OrderStatus.PENDING, (ORDER_CONFIRMATION_EMAIL,)),
            (OrderStatus.PENDING, OrderStatus.PROCESSING, (FARMER_NEW_ORDER_SMS,)),
            (
                OrderStatus.PENDING,
                OrderStatus.CANCELLED,
                (FARMER_ORDER_CANCELLED_SMS, CUSTOMER_ORDER_CANCELLED_EMAIL),
            ),
            (
                OrderStatus.PROCESSING,
                OrderStatus.CANCELLED,
                (FARMER_ORDER_CANCELLED_SMS, CUSTOMER_ORDER_CANCELLED_EMAIL),
            ),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED, (CUSTOMER_ORDER_SHIPPED_SMS,)),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED, ()),
        ],
    )
    def test_rules_for_transition(self, old, new, expected):
        assert rules_for(old, new) == expected

    def test_wildcard_does_not_match_creation(self):
        assert FARMER_NEW_ORDER_SMS not in rules_for(None, OrderStatus.PROCESSING)

    def test_farmer_verification_rules(self):
        assert FARMER_VERIFICATION_RULES[True] == (FARMER_APPROVED_EMAIL,)
        assert FARMER_VERIFICATION_RULES[False] == (FARMER_REJECTED_EMAIL,)

    def test_rules_are_indexed_by_key(self):
        assert RULES_BY_KEY["farmer_new_order_sms"] is FARMER_NEW_ORDER_SMS
        assert len(RULES_BY_KEY) == 7

    def test_channels_and_audiences(self):
        assert FARMER_NEW_ORDER_SMS.channel == Channel.SMS
        assert FARMER_NEW_ORDER_SMS.audience == Audience.FARMER
        assert CUSTOMER_ORDER_CANCELLED_EMAIL.channel == Channel.EMAIL
        assert CUSTOMER_ORDER_CANCELLED_EMAIL.audience == Audience.CUSTOMER


class TestRendering:
    def test_sms_has_text_only(self):
        subject, text, html = FARMER_NEW_ORDER_SMS.render({"order": ORDER})

        assert subject == ""
        assert html == ""
        assert text.startswith("AgroHub Order Alert!")
        assert "Quantity: 2 basket" in text
        assert "Order ID: #ORD-20260101-ABC123" in text

    def test_email_has_subject_text_and_html(self):
        subject, text, html = ORDER_CONFIRMATION_EMAIL.render(
            {"order": ORDER, "frontend_url": "http://localhost:5173"}
        )

        assert subject == "Order Confirmation - ORD-20260101-ABC123 | AgroHub"
        assert "NGN 9,500.00" in text
        assert "<html" in html.lower()

    def test_text_is_not_html_escaped(self):
        order = dict(ORDER, customer_name="O'Brien & Sons")

        _, text, _ = FARMER_NEW_ORDER_SMS.render({"order": order})

        assert "O'Brien & Sons" in text

    def test_rejection_lists_required_documents(self):
        farmer = {
            "name": "Chidi",
            "farm_name": "Delta Fisheries",
            "rejection_reason": "Incomplete documents",
            "required_documents": ["Land title", "ID card"],
            "admin_notes": "",
        }

        subject, text, _ = FARMER_REJECTED_EMAIL.render(
            {"farmer": farmer, "decision_date": "01 January 2026", "frontend_url": ""}
        )

        assert subject == "Your Farmer Application Requires Additional Information"
        assert "- Land title" in text
        assert "- ID card" in text
