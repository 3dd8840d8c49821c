"""Notification audit records.

Every delivery attempt appends exactly one row, whatever its outcome.
Rows are never updated or deleted: a retry of a failed attempt is a new
row pointing at the original through ``retry_of``.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class Channel(models.TextChoices):
    SMS = "sms", "SMS"
    EMAIL = "email", "Email"


class Audience(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    FARMER = "farmer", "Farmer"


class Outcome(models.TextChoices):
    SENT = "sent", "Sent"
    SKIPPED = "skipped", "Skipped"
    FAILED = "failed", "Failed"


class Notification(BaseModel):
    """One delivery attempt on one channel for one rule.

    Correlated with either an order or a farmer (verification emails).
    ``sent_at`` is the attempt time; for order notifications it is kept
    non-decreasing per order by the order repository.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="notifications",
    )
    farmer = models.ForeignKey(
        "farmers.Farmer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="notifications",
    )
    correlation_id = models.CharField(max_length=64, blank=True, default="")
    rule = models.CharField(max_length=64)
    channel = models.CharField(max_length=10, choices=Channel.choices)
    audience = models.CharField(max_length=10, choices=Audience.choices)
    recipient = models.CharField(max_length=254, blank=True, default="")
    subject = models.CharField(max_length=255, blank=True, default="")
    message = models.TextField(blank=True, default="")
    html_message = models.TextField(blank=True, default="")
    sent_at = models.DateTimeField()
    outcome = models.CharField(max_length=10, choices=Outcome.choices)
    error_class = models.CharField(max_length=64, blank=True, default="")
    error_message = models.TextField(blank=True, default="")
    provider_message_id = models.CharField(max_length=255, blank=True, default="")
    attempt = models.PositiveIntegerField(default=1)
    retry_of = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="retries",
    )

    class Meta:
        db_table = "notifications"
        ordering = ["sent_at", "id"]
        indexes = [
            models.Index(fields=["outcome", "sent_at"], name="notif_outcome_sent_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.rule} {self.channel}->{self.recipient or '?'} ({self.outcome})"
