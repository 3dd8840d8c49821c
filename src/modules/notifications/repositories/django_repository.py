"""Django ORM implementation of the Notification repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.core.repositories.errors import store_errors
from modules.notifications.dtos import DeliveryOutcome, DeliveryRequest
from modules.notifications.models import Notification, Outcome
from modules.notifications.repositories.interfaces import INotificationRepository
from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


class NotificationDjangoRepository(INotificationRepository):
    """Concrete Notification repository backed by Django ORM.

    Order-correlated records go through the order repository, which
    serializes appends per order; farmer-correlated records are inserted
    directly.
    """

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def append(self, request: DeliveryRequest, outcome: DeliveryOutcome) -> Notification:
        fields: Dict[str, Any] = {
            "farmer_id": request.farmer_id,
            "correlation_id": request.correlation_id,
            "rule": request.rule,
            "channel": request.channel,
            "audience": request.audience,
            "recipient": request.recipient,
            "subject": request.subject,
            "message": request.message,
            "html_message": request.html_message,
            "sent_at": outcome.sent_at,
            "outcome": outcome.outcome,
            "error_class": outcome.error_class,
            "error_message": outcome.error_message,
            "provider_message_id": outcome.provider_message_id,
            "attempt": request.attempt,
            "retry_of_id": request.retry_of_id,
        }
        if request.order_id is not None:
            record = OrderDjangoRepository(using=self.using).append_notification(
                request.order_id, fields
            )
        else:
            with store_errors(self.using):
                record = Notification.objects.using(self.using).create(**fields)

        logger.info(
            "notification.recorded",
            notification_id=str(record.id),
            rule=record.rule,
            outcome=record.outcome,
        )
        return record

    def list_retryable(self, max_attempts: int, limit: int = 100) -> List[Notification]:
        with store_errors(self.using):
            return list(
                Notification.objects.using(self.using)
                .filter(
                    outcome=Outcome.FAILED,
                    attempt__lt=max_attempts,
                    retries__isnull=True,
                )
                .order_by("sent_at", "id")[:limit]
            )

    def get_by_id(self, id: str) -> Optional[Notification]:
        with store_errors(self.using):
            try:
                return Notification.objects.using(self.using).filter(id=id).first()
            except (ValueError, ValidationError):
                return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Notification]:
        with store_errors(self.using):
            queryset = Notification.objects.using(self.using).all()
            if filters:
                queryset = queryset.filter(**filters)
            return list(queryset)
