"""Order DRF serializers for API input/output.

Serializers handle HTTP-level concerns (request parsing, response
rendering); business logic lives in the Service Layer, which receives
pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.notifications.models import Notification
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class DeliveryAddressSerializer(serializers.Serializer):
    address = serializers.CharField()
    city = serializers.CharField()
    state = serializers.CharField()
    country = serializers.CharField(required=False, default="Nigeria")


class CreateOrderSerializer(serializers.Serializer):
    """Validates the checkout payload."""

    customer_name = serializers.CharField(max_length=255)
    customer_email = serializers.EmailField()
    customer_phone = serializers.CharField(
        max_length=20, required=False, default="", allow_blank=True
    )
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    delivery_address = DeliveryAddressSerializer()
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
        default=PaymentMethod.CASH_ON_DELIVERY,
    )
    special_instructions = serializers.CharField(
        required=False, default="", allow_blank=True
    )


class StatusUpdateSerializer(serializers.Serializer):
    """Administrator status change: ``status`` must be one of the enum values."""

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class ConfirmationRequestSerializer(serializers.Serializer):
    """Best-effort confirmation request for a server or ``LOCAL-`` order."""

    order_id = serializers.CharField(max_length=64)
    order_number = serializers.CharField(required=False, default="", allow_blank=True)
    customer_name = serializers.CharField()
    customer_email = serializers.EmailField()
    product_name = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(required=False, default="", allow_blank=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    delivery_fee = serializers.DecimalField(max_digits=10, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.CharField(required=False, default="", allow_blank=True)
    delivery_address = serializers.CharField(required=False, default="", allow_blank=True)
    delivery_city = serializers.CharField(required=False, default="", allow_blank=True)
    delivery_state = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusHistorySerializer(serializers.ModelSerializer):
    updated_by = serializers.SerializerMethodField()

    class Meta:
        model = OrderStatusHistory
        fields = ["sequence", "old_status", "status", "timestamp", "note", "updated_by"]
        read_only_fields = fields

    def get_updated_by(self, obj: OrderStatusHistory) -> str | None:
        return obj.updated_by.get_username() if obj.updated_by_id else None


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "rule",
            "channel",
            "audience",
            "recipient",
            "sent_at",
            "outcome",
            "provider_message_id",
            "error_class",
            "attempt",
            "retry_of",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full order with history and notification log."""

    status_history = StatusHistorySerializer(many=True, read_only=True)
    notifications = NotificationSerializer(many=True, read_only=True)
    farmer_name = serializers.CharField(source="farmer.farm_name", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "version",
            "customer_id",
            "customer_name",
            "customer_email",
            "customer_phone",
            "delivery_address",
            "delivery_city",
            "delivery_state",
            "delivery_country",
            "farmer_id",
            "farmer_name",
            "product_id",
            "product_name",
            "quantity",
            "unit",
            "unit_price",
            "delivery_fee",
            "total_amount",
            "payment_method",
            "special_instructions",
            "admin_notes",
            "created_at",
            "updated_at",
            "status_history",
            "notifications",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order lists (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "customer_name",
            "product_name",
            "quantity",
            "unit",
            "total_amount",
            "created_at",
        ]
        read_only_fields = fields
