"""Order DTOs for the Service Layer.

Pydantic v2 contracts between the API layer (DRF serializers) and the
Service layer.  DTOs are immutable (``frozen=True``).
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from modules.orders.constants import PaymentMethod


class DeliveryAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    city: str
    state: str
    country: str = "Nigeria"


class CreateOrderDTO(BaseModel):
    """Immutable DTO for checkout requests.

    ``unit_price`` and the delivery fee are resolved by the Service
    Layer; the client never dictates prices.
    """

    model_config = ConfigDict(frozen=True)

    customer_name: str
    customer_email: EmailStr
    customer_phone: str = ""
    product_id: UUID
    quantity: int
    delivery_address: DeliveryAddressDTO
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    special_instructions: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("customer_name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Customer name is required.")
        return v.strip()
