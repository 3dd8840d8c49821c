"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created (enters ``Pending``)."""

    status: str = "Pending"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised after a status transition is durably recorded."""

    old_status: Optional[str] = None
    new_status: str = ""
