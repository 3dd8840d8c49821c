"""Farmer model and verification state.

Business rules implemented:
- Only a verified farmer's products can be ordered (enforced at the
  order service layer).
- Email must be unique in the system.
- Rejection details (reason, required documents, notes, who and when)
  are kept on the farmer and cleared again on approval.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class Farmer(BaseModel):
    """Farmer aggregate root.

    ``user`` is optional: farmers onboarded by an administrator may not
    have a login yet.  ``phone`` is the SMS recipient for new-order and
    cancellation alerts.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="farmer_profile",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=20, blank=True, default="")
    farm_name = models.CharField(max_length=255)
    location = models.CharField(max_length=255, blank=True, default="")
    is_verified = models.BooleanField(default=False)
    verification_date = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")
    required_documents = models.JSONField(default=list, blank=True)
    admin_notes = models.TextField(blank=True, default="")
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "farmers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_verified"], name="farmers_verified_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.farm_name} ({self.name})"
