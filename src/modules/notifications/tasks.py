"""Celery tasks delivering notifications.

Each rule fired by an event is its own task, so the channels of one
event succeed or fail independently.  Tasks resolve the store, render
the rule's templates and hand a ``DeliveryRequest`` to the dispatcher,
which records the attempt.
"""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from celery import shared_task
from django.conf import settings
from django.db import connections
from django.utils import timezone
from kombu.exceptions import OperationalError as BrokerUnavailable

from modules.core.gateway import store_gateway
from modules.core.middleware import get_correlation_id
from modules.farmers.repositories.django_repository import FarmerDjangoRepository
from modules.notifications.dispatcher import build_dispatcher
from modules.notifications.dtos import DeliveryRequest
from modules.notifications.models import Audience, Channel
from modules.notifications.repositories.django_repository import (
    NotificationDjangoRepository,
)
from modules.notifications.rules import (
    ADMIN_FARMER_SMS,
    ORDER_CONFIRMATION_EMAIL,
    RULES_BY_KEY,
    NotificationRule,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


def enqueue(task, *args: Any) -> None:
    """Queue ``task``; run it in-process when the broker is unreachable.

    Either way the attempt ends up recorded by the dispatcher.
    """
    try:
        task.delay(*args)
    except BrokerUnavailable as exc:
        logger.warning("notification.broker_unavailable", task=task.name, error=str(exc))
        task.apply(args=args)


def _resolve_store(store_alias: Optional[str]) -> str:
    if store_alias and store_alias in connections.databases:
        return store_alias
    return store_gateway.require_store().handle


def _money(value: Any) -> str:
    return f"NGN {Decimal(value):,.2f}"


def order_context(order) -> Dict[str, Any]:
    history = list(order.status_history.all())
    return {
        "order": {
            "order_number": order.order_number,
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "product_name": order.product_name,
            "quantity": order.quantity,
            "unit": order.unit,
            "unit_price": _money(order.unit_price),
            "delivery_fee": _money(order.delivery_fee),
            "total_amount": _money(order.total_amount),
            "payment_method": order.get_payment_method_display(),
            "delivery_address": order.delivery_address,
            "delivery_city": order.delivery_city,
            "delivery_state": order.delivery_state,
            "status": order.status,
        },
        "note": history[-1].note if history else "",
        "frontend_url": settings.FRONTEND_URL,
    }


def order_recipient(rule: NotificationRule, order) -> str:
    if rule.audience == Audience.FARMER:
        farmer = order.farmer
        return farmer.phone if rule.channel == Channel.SMS else farmer.email
    return order.customer_phone if rule.channel == Channel.SMS else order.customer_email


@shared_task(name="notifications.deliver_order_notification")
def deliver_order_notification(
    order_id: str,
    rule_key: str,
    store_alias: Optional[str] = None,
    correlation_id: str = "",
) -> Optional[Dict[str, Any]]:
    """Deliver one order rule's message and record the attempt."""
    rule = RULES_BY_KEY[rule_key]
    alias = _resolve_store(store_alias)
    log = logger.bind(order_id=str(order_id), rule=rule_key)

    order = OrderDjangoRepository(using=alias).get_by_id(order_id)
    if order is None:
        log.error("notification.order_missing")
        return None

    subject, text, html = rule.render(order_context(order))
    outcome = build_dispatcher(using=alias).send(
        DeliveryRequest(
            rule=rule.key,
            channel=rule.channel,
            audience=rule.audience,
            recipient=order_recipient(rule, order),
            message=text,
            subject=subject,
            html_message=html,
            order_id=order.id,
            correlation_id=correlation_id,
        )
    )
    return outcome.model_dump(mode="json")


@shared_task(name="notifications.deliver_farmer_notification")
def deliver_farmer_notification(
    farmer_id: str,
    rule_key: str,
    store_alias: Optional[str] = None,
    correlation_id: str = "",
) -> Optional[Dict[str, Any]]:
    """Deliver a verification decision email to a farmer."""
    rule = RULES_BY_KEY[rule_key]
    alias = _resolve_store(store_alias)
    log = logger.bind(farmer_id=str(farmer_id), rule=rule_key)

    farmer = FarmerDjangoRepository(using=alias).get_by_id(farmer_id)
    if farmer is None:
        log.error("notification.farmer_missing")
        return None

    decided_at = farmer.verification_date or farmer.rejected_at or timezone.now()
    context = {
        "farmer": farmer,
        "decision_date": f"{decided_at:%d %B %Y}",
        "frontend_url": settings.FRONTEND_URL,
    }
    subject, text, html = rule.render(context)
    recipient = farmer.phone if rule.channel == Channel.SMS else farmer.email
    outcome = build_dispatcher(using=alias).send(
        DeliveryRequest(
            rule=rule.key,
            channel=rule.channel,
            audience=rule.audience,
            recipient=recipient,
            message=text,
            subject=subject,
            html_message=html,
            farmer_id=farmer.id,
            correlation_id=correlation_id,
        )
    )
    return outcome.model_dump(mode="json")


@shared_task(name="notifications.deliver_farmer_message")
def deliver_farmer_message(
    farmer_id: str,
    message: str,
    store_alias: Optional[str] = None,
    correlation_id: str = "",
) -> Optional[Dict[str, Any]]:
    """Send an administrator's SMS to a farmer's phone."""
    alias = _resolve_store(store_alias)
    farmer = FarmerDjangoRepository(using=alias).get_by_id(farmer_id)
    if farmer is None:
        logger.error("notification.farmer_missing", farmer_id=str(farmer_id), rule=ADMIN_FARMER_SMS)
        return None

    outcome = build_dispatcher(using=alias).send(
        DeliveryRequest(
            rule=ADMIN_FARMER_SMS,
            channel=Channel.SMS,
            audience=Audience.FARMER,
            recipient=farmer.phone,
            message=message,
            farmer_id=farmer.id,
            correlation_id=correlation_id,
        )
    )
    return outcome.model_dump(mode="json")


@shared_task(name="notifications.deliver_confirmation_email")
def deliver_confirmation_email(
    payload: Dict[str, Any], correlation_id: str = ""
) -> Dict[str, Any]:
    """Best-effort confirmation for an order only the client knows about.

    Used for orders placed while the server was unreachable (``LOCAL-``
    ids), so the record carries no order correlation.
    """
    alias = _resolve_store(None)
    rule = ORDER_CONFIRMATION_EMAIL
    context = {
        "order": {
            "order_number": payload.get("order_number") or payload.get("order_id", ""),
            "customer_name": payload.get("customer_name", ""),
            "product_name": payload.get("product_name", ""),
            "quantity": payload.get("quantity", ""),
            "unit": payload.get("unit", ""),
            "unit_price": _money(payload.get("unit_price", 0)),
            "delivery_fee": _money(payload.get("delivery_fee", 0)),
            "total_amount": _money(payload.get("total_amount", 0)),
            "payment_method": payload.get("payment_method", ""),
            "delivery_address": payload.get("delivery_address", ""),
            "delivery_city": payload.get("delivery_city", ""),
            "delivery_state": payload.get("delivery_state", ""),
        },
        "note": "",
        "frontend_url": settings.FRONTEND_URL,
    }
    subject, text, html = rule.render(context)
    outcome = build_dispatcher(using=alias).send(
        DeliveryRequest(
            rule=rule.key,
            channel=rule.channel,
            audience=rule.audience,
            recipient=payload.get("customer_email", ""),
            message=text,
            subject=subject,
            html_message=html,
            correlation_id=correlation_id,
        )
    )
    return outcome.model_dump(mode="json")


@shared_task(name="notifications.retry_failed_notifications")
def retry_failed_notifications(limit: int = 100) -> Dict[str, int]:
    """Re-send failed attempts that have not been retried yet.

    Each retry is a new record pointing at the original via
    ``retry_of``; originals are never modified.  Attempts stop at
    ``NOTIFICATION_MAX_ATTEMPTS``.
    """
    alias = _resolve_store(None)
    repository = NotificationDjangoRepository(using=alias)
    dispatcher = build_dispatcher(using=alias)
    correlation_id = get_correlation_id()

    counts: Counter = Counter()
    for original in repository.list_retryable(
        settings.NOTIFICATION_MAX_ATTEMPTS, limit=limit
    ):
        outcome = dispatcher.send(DeliveryRequest.retry_of(original, correlation_id))
        counts[str(outcome.outcome)] += 1

    logger.info("notification.retry_sweep_completed", **counts)
    return dict(counts)
