"""Client-side checkout models.

``LocalPendingOrder`` is the stand-in for an order the server could not
accept yet: it carries the full checkout payload so it can be submitted
again later, and the same total the server would have charged.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

DELIVERY_FEE = Decimal("500.00")
LOCAL_ID_PREFIX = "LOCAL-"


class DeliveryAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    city: str
    state: str
    country: str = "Nigeria"


class CheckoutRequest(BaseModel):
    """Everything needed to place (or later re-place) one order."""

    model_config = ConfigDict(frozen=True)

    customer_name: str
    customer_email: EmailStr
    customer_phone: str = ""
    product_id: UUID
    product_name: str
    unit: str = "kg"
    unit_price: Decimal
    quantity: int = Field(ge=1)
    delivery_address: DeliveryAddress
    payment_method: str = "cash_on_delivery"
    special_instructions: str = ""

    def total(self, delivery_fee: Decimal = DELIVERY_FEE) -> Decimal:
        return self.unit_price * self.quantity + delivery_fee

    def api_payload(self) -> Dict[str, Any]:
        """Body for ``POST /api/v1/orders/``."""
        return {
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "product_id": str(self.product_id),
            "quantity": self.quantity,
            "delivery_address": self.delivery_address.model_dump(),
            "payment_method": self.payment_method,
            "special_instructions": self.special_instructions,
        }


class LocalPendingOrder(BaseModel):
    local_id: str
    payload: CheckoutRequest
    total: Decimal
    status: str = "Pending"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: str = ""

    @classmethod
    def create(
        cls, payload: CheckoutRequest, delivery_fee: Decimal = DELIVERY_FEE, error: str = ""
    ) -> LocalPendingOrder:
        now = datetime.now(timezone.utc)
        local_id = f"{LOCAL_ID_PREFIX}{int(now.timestamp() * 1000)}-{secrets.token_hex(3).upper()}"
        return cls(
            local_id=local_id,
            payload=payload,
            total=payload.total(delivery_fee),
            created_at=now,
            last_error=error,
        )


class CheckoutResult(BaseModel):
    """What the shopper sees after checkout; ``is_local`` marks a stand-in."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    order_number: str
    status: str
    total: Decimal
    is_local: bool = False
    order: Dict[str, Any] = {}
