"""Declarative notification rules.

The tables below decide which messages an order transition or a farmer
verification decision produces.  Adding a notification means adding a
row and a template, not a branch.

Order rules are keyed by ``(old_status, new_status)``: ``None`` as the
old status is order creation and ``"*"`` matches any old status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from django.template.loader import render_to_string

from modules.notifications.models import Audience, Channel
from modules.orders.constants import OrderStatus

ANY_STATUS = "*"


@dataclass(frozen=True)
class NotificationRule:
    key: str
    channel: str
    audience: str
    template: str

    def render(self, context: Dict[str, Any]) -> Tuple[str, str, str]:
        """Return ``(subject, text, html)``; SMS rules only have text."""
        base = f"notifications/{self.template}"
        text = render_to_string(f"{base}.txt", context).strip()
        if self.channel != Channel.EMAIL:
            return "", text, ""
        subject = " ".join(render_to_string(f"{base}_subject.txt", context).split())
        html = render_to_string(f"{base}.html", context)
        return subject, text, html


ORDER_CONFIRMATION_EMAIL = NotificationRule(
    "order_confirmation_email", Channel.EMAIL, Audience.CUSTOMER, "order_confirmation"
)
FARMER_NEW_ORDER_SMS = NotificationRule(
    "farmer_new_order_sms", Channel.SMS, Audience.FARMER, "farmer_new_order"
)
FARMER_ORDER_CANCELLED_SMS = NotificationRule(
    "farmer_order_cancelled_sms", Channel.SMS, Audience.FARMER, "farmer_order_cancelled"
)
CUSTOMER_ORDER_CANCELLED_EMAIL = NotificationRule(
    "customer_order_cancelled_email",
    Channel.EMAIL,
    Audience.CUSTOMER,
    "customer_order_cancelled",
)
CUSTOMER_ORDER_SHIPPED_SMS = NotificationRule(
    "customer_order_shipped_sms", Channel.SMS, Audience.CUSTOMER, "customer_order_shipped"
)
FARMER_APPROVED_EMAIL = NotificationRule(
    "farmer_approved_email", Channel.EMAIL, Audience.FARMER, "farmer_approved"
)
FARMER_REJECTED_EMAIL = NotificationRule(
    "farmer_rejected_email", Channel.EMAIL, Audience.FARMER, "farmer_rejected"
)

# Free-text SMS an administrator sends to a farmer; not driven by an event.
ADMIN_FARMER_SMS = "admin_farmer_sms"

ORDER_NOTIFICATION_RULES: Dict[Tuple[Optional[str], str], Tuple[NotificationRule, ...]] = {
    (None, OrderStatus.PENDING): (ORDER_CONFIRMATION_EMAIL,),
    (ANY_STATUS, OrderStatus.PROCESSING): (FARMER_NEW_ORDER_SMS,),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): (
        FARMER_ORDER_CANCELLED_SMS,
        CUSTOMER_ORDER_CANCELLED_EMAIL,
    ),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED): (
        FARMER_ORDER_CANCELLED_SMS,
        CUSTOMER_ORDER_CANCELLED_EMAIL,
    ),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): (CUSTOMER_ORDER_SHIPPED_SMS,),
}

FARMER_VERIFICATION_RULES: Dict[bool, Tuple[NotificationRule, ...]] = {
    True: (FARMER_APPROVED_EMAIL,),
    False: (FARMER_REJECTED_EMAIL,),
}

RULES_BY_KEY: Dict[str, NotificationRule] = {
    rule.key: rule
    for rules in (
        *ORDER_NOTIFICATION_RULES.values(),
        *FARMER_VERIFICATION_RULES.values(),
    )
    for rule in rules
}


def rules_for(old_status: Optional[str], new_status: str) -> Tuple[NotificationRule, ...]:
    """Rules fired by ``old_status -> new_status``, each rule at most once."""
    matched = ORDER_NOTIFICATION_RULES.get((old_status, new_status), ())
    if old_status is not None:
        matched += ORDER_NOTIFICATION_RULES.get((ANY_STATUS, new_status), ())
    return tuple(dict.fromkeys(matched))
