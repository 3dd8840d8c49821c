"""Order domain constants.

Defines status choices and the order state machine graph.  Terminal
states map to the empty set, so every status has an entry.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    PROCESSING = "Processing", "Processing"
    SHIPPED = "Shipped", "Shipped"
    DELIVERED = "Delivered", "Delivered"
    CANCELLED = "Cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    CASH_ON_DELIVERY = "cash_on_delivery", "Cash on delivery"
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    CARD = "card", "Card"
    MOBILE_MONEY = "mobile_money", "Mobile money"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

ORDER_NUMBER_MAX_RETRIES = 5

# Fields that never change once the order row exists.
IMMUTABLE_FIELDS: tuple[str, ...] = (
    "order_number",
    "customer_id",
    "customer_name",
    "customer_email",
    "customer_phone",
    "delivery_address",
    "delivery_city",
    "delivery_state",
    "delivery_country",
    "farmer_id",
    "product_id",
    "product_name",
    "quantity",
    "unit",
    "unit_price",
    "delivery_fee",
    "total_amount",
    "payment_method",
    "special_instructions",
    "idempotency_key",
)
