"""Notification dispatcher.

Sends one ``DeliveryRequest`` through the provider for its channel and
records exactly one ``Notification`` row, whatever happens:

* provider missing or not configured, or no recipient -> ``skipped``
* provider raised ``NotificationFailed``              -> ``failed``
* provider raised anything else                       -> ``failed`` (``unexpected``)
* provider accepted the message                        -> ``sent``

There is no inline retry; failed rows are picked up by the periodic
``notifications.retry_failed_notifications`` sweep.
"""

from __future__ import annotations

from typing import Callable, Mapping

import structlog
from django.utils import timezone

from modules.notifications.dtos import DeliveryOutcome, DeliveryRequest
from modules.notifications.models import Outcome
from modules.notifications.providers import (
    INotificationProvider,
    UNEXPECTED,
    NotificationFailed,
    build_providers,
)
from modules.notifications.repositories.django_repository import (
    NotificationDjangoRepository,
)
from modules.notifications.repositories.interfaces import INotificationRepository

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        providers: Mapping[str, INotificationProvider],
        repository: INotificationRepository,
        clock: Callable = timezone.now,
    ) -> None:
        self._providers = providers
        self._repository = repository
        self._clock = clock

    def send(self, request: DeliveryRequest) -> DeliveryOutcome:
        log = logger.bind(
            rule=request.rule,
            channel=request.channel,
            order_id=str(request.order_id) if request.order_id else None,
            farmer_id=str(request.farmer_id) if request.farmer_id else None,
            attempt=request.attempt,
        )
        outcome = self._deliver(request, log)
        record = self._repository.append(request, outcome)
        return outcome.model_copy(
            update={"notification_id": record.id, "sent_at": record.sent_at}
        )

    def _deliver(self, request: DeliveryRequest, log) -> DeliveryOutcome:
        provider = self._providers.get(request.channel)
        if provider is None or not provider.is_configured:
            log.info("notification.skipped", reason="provider_not_configured")
            return DeliveryOutcome(
                outcome=Outcome.SKIPPED,
                sent_at=self._clock(),
                error_class="not_configured",
            )
        if not request.recipient:
            log.info("notification.skipped", reason="missing_recipient")
            return DeliveryOutcome(
                outcome=Outcome.SKIPPED,
                sent_at=self._clock(),
                error_class="missing_recipient",
            )

        try:
            provider_message_id = provider.send(
                request.recipient,
                request.message,
                subject=request.subject,
                html_message=request.html_message,
            )
        except NotificationFailed as exc:
            log.warning(
                "notification.failed", error_class=exc.error_class, error=str(exc)
            )
            return DeliveryOutcome(
                outcome=Outcome.FAILED,
                sent_at=self._clock(),
                error_class=exc.error_class,
                error_message=str(exc),
            )
        except Exception as exc:
            log.error("notification.failed", error_class=UNEXPECTED, error=repr(exc), exc_info=True)
            return DeliveryOutcome(
                outcome=Outcome.FAILED,
                sent_at=self._clock(),
                error_class=UNEXPECTED,
                error_message=repr(exc),
            )

        log.info("notification.sent", provider_message_id=provider_message_id)
        return DeliveryOutcome(
            outcome=Outcome.SENT,
            sent_at=self._clock(),
            provider_message_id=provider_message_id,
        )


def build_dispatcher(using: str = "default") -> NotificationDispatcher:
    """Dispatcher wired with the settings-configured providers."""
    return NotificationDispatcher(
        providers=build_providers(),
        repository=NotificationDjangoRepository(using=using),
    )
