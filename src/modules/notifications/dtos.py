"""Notification DTOs.

``DeliveryRequest`` is what a task hands to the dispatcher;
``DeliveryOutcome`` is what the dispatcher reports back.  Both are
immutable pydantic models.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from modules.notifications.models import Notification


class DeliveryRequest(BaseModel):
    """One message on one channel, produced by one notification rule."""

    model_config = ConfigDict(frozen=True)

    rule: str
    channel: str
    audience: str
    recipient: str = ""
    message: str
    subject: str = ""
    html_message: str = ""
    order_id: Optional[UUID] = None
    farmer_id: Optional[UUID] = None
    correlation_id: str = ""
    attempt: int = 1
    retry_of_id: Optional[UUID] = None

    @classmethod
    def retry_of(cls, record: Notification, correlation_id: str = "") -> DeliveryRequest:
        """Build the follow-up attempt for a failed record."""
        return cls(
            rule=record.rule,
            channel=record.channel,
            audience=record.audience,
            recipient=record.recipient,
            message=record.message,
            subject=record.subject,
            html_message=record.html_message,
            order_id=record.order_id,
            farmer_id=record.farmer_id,
            correlation_id=correlation_id or record.correlation_id,
            attempt=record.attempt + 1,
            retry_of_id=record.id,
        )


class DeliveryOutcome(BaseModel):
    """Typed result of a send: ``sent``, ``skipped`` or ``failed``."""

    model_config = ConfigDict(frozen=True)

    outcome: str
    sent_at: datetime
    provider_message_id: str = ""
    error_class: str = ""
    error_message: str = ""
    notification_id: Optional[UUID] = None
