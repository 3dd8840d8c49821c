"""Order and OrderStatusHistory models.

Business rules implemented:
- Customer, delivery and product details are snapshotted at creation and
  are immutable afterwards (``Order.save`` refuses to change them).
- ``total_amount`` is always ``unit_price * quantity + delivery_fee``.
- Every status change appends one ``OrderStatusHistory`` row; ``sequence``
  numbers the rows per order and equals ``Order.version`` for the latest.
- Idempotency via the ``idempotency_key`` unique constraint.
- Order number auto-generated as human-readable identifier.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    IMMUTABLE_FIELDS,
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
)

logger = structlog.get_logger(__name__)


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` is generated on first save (``ORD-YYYYMMDD-XXXXXX``).
    The UUIDv7 ``id`` is used for all internal references and API look-ups.

    ``status``, ``admin_notes`` and ``version`` are the only columns that
    move after creation, and only through the repository's versioned
    check-and-set.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField(max_length=254)
    customer_phone = models.CharField(max_length=20, blank=True, default="")
    delivery_address = models.TextField()
    delivery_city = models.CharField(max_length=100)
    delivery_state = models.CharField(max_length=100)
    delivery_country = models.CharField(max_length=100, default="Nigeria")
    farmer = models.ForeignKey(
        "farmers.Farmer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit = models.CharField(max_length=32)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(
        max_length=32,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CASH_ON_DELIVERY,
    )
    special_instructions = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    admin_notes = models.TextField(blank=True, default="")
    version = models.PositiveIntegerField(default=0)
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="orders_quantity_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = {
            name: getattr(instance, name)
            for name in IMMUTABLE_FIELDS
            if name in field_names
        }
        return instance

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether *new_status* is reachable in one step."""
        return new_status in VALID_TRANSITIONS.get(self.status, frozenset())

    @staticmethod
    def compute_total(
        unit_price: Decimal, quantity: int, delivery_fee: Decimal
    ) -> Decimal:
        return unit_price * quantity + delivery_fee

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self._state.adding:
            self.total_amount = self.compute_total(
                Decimal(self.unit_price), self.quantity, Decimal(self.delivery_fee)
            )
            if not self.order_number:
                self.order_number = self._unique_order_number(kwargs.get("using"))
        else:
            self._check_immutable_fields()
        super().save(*args, **kwargs)

    def _unique_order_number(self, using: str | None) -> str:
        manager = Order.objects.using(using or "default")
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = self.generate_order_number()
            if not manager.filter(order_number=candidate).exists():
                return candidate
        raise RuntimeError(
            f"Failed to generate unique order_number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    def _check_immutable_fields(self) -> None:
        loaded = getattr(self, "_loaded_values", {})
        changed = [
            name for name, value in loaded.items() if getattr(self, name) != value
        ]
        if changed:
            logger.warning(
                "order.immutable_field_change_refused",
                order_id=str(self.id),
                fields=changed,
            )
            raise ValidationError(
                {name: "This field cannot change once the order exists." for name in changed}
            )

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail of status transitions.

    ``sequence`` 0 is the creation entry (``old_status`` is ``None``);
    every transition appends ``sequence = previous version + 1``.  The
    ``(order, sequence)`` unique constraint makes a lost check-and-set
    race fail loudly instead of writing a second entry for one version.
    ``updated_by`` is ``None`` for system-initiated changes.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    sequence = models.PositiveIntegerField()
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    note = models.TextField(blank=True, default="")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "order_status_history"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="osh_order_sequence_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.old_status} -> {self.status}"
