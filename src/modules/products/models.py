"""Product model with stock control.

Business rules implemented:
- An inactive product cannot be ordered (enforced at the order service).
- Price must be greater than zero.
- Stock quantity cannot be negative; it is reserved when an order is
  placed and released when the order is cancelled.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(BaseModel):
    """Produce listed by a farmer.

    ``unit`` is the selling unit (kg, crate, bag...); order quantities
    are expressed in it.
    """

    farmer = models.ForeignKey(
        "farmers.Farmer",
        on_delete=models.PROTECT,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    unit = models.CharField(max_length=32, default="kg")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    def __str__(self) -> str:
        return f"{self.name} ({self.unit})"
