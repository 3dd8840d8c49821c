"""Event handlers turning domain events into notification tasks.

Handlers look the event up in the rule tables and schedule one task per
rule for after the surrounding transaction commits, so a rolled-back
transition never notifies and a failing task never undoes a committed
one.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from django.db import transaction

from modules.core.middleware import get_correlation_id
from modules.farmers.events import FarmerVerificationDecided
from modules.notifications.rules import (
    FARMER_VERIFICATION_RULES,
    NotificationRule,
    rules_for,
)
from modules.notifications.tasks import (
    deliver_farmer_notification,
    deliver_order_notification,
    enqueue,
)
from modules.orders.events import OrderCreated, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


def _deferred_enqueue(task, *args):
    # on_commit logs robust callback failures by __qualname__, so this
    # must be a real function rather than a partial.
    def enqueue_after_commit() -> None:
        enqueue(task, *args)

    return enqueue_after_commit


def _schedule(task, aggregate_id, rules: Iterable[NotificationRule], store_alias: str) -> int:
    correlation_id = get_correlation_id()
    scheduled = 0
    for rule in rules:
        transaction.on_commit(
            _deferred_enqueue(task, str(aggregate_id), rule.key, store_alias, correlation_id),
            using=store_alias,
            robust=True,
        )
        scheduled += 1
    return scheduled


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        count = _schedule(
            deliver_order_notification,
            event.aggregate_id,
            rules_for(None, event.status),
            event.store_alias,
        )
        logger.info(
            "notification.rules_scheduled",
            order_id=str(event.aggregate_id),
            transition=f"created->{event.status}",
            count=count,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        count = _schedule(
            deliver_order_notification,
            event.aggregate_id,
            rules_for(event.old_status, event.new_status),
            event.store_alias,
        )
        logger.info(
            "notification.rules_scheduled",
            order_id=str(event.aggregate_id),
            transition=f"{event.old_status}->{event.new_status}",
            count=count,
        )


class FarmerVerificationHandler(IEventHandler[FarmerVerificationDecided]):
    def handle(self, event: FarmerVerificationDecided) -> None:
        count = _schedule(
            deliver_farmer_notification,
            event.aggregate_id,
            FARMER_VERIFICATION_RULES[event.is_verified],
            event.store_alias,
        )
        logger.info(
            "notification.rules_scheduled",
            farmer_id=str(event.aggregate_id),
            is_verified=event.is_verified,
            count=count,
        )


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
farmer_verification_handler = FarmerVerificationHandler()
