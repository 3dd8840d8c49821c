"""Farmer DTOs for the Service Layer.

Pydantic v2 contracts between the API layer (DRF serializers) and the
Service layer.  DTOs are immutable (``frozen=True``).
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class VerifyFarmerDTO(BaseModel):
    """Administrator decision on a farmer's verification request.

    A rejection always carries a reason; when the administrator leaves
    it empty the generic ``"General rejection"`` is recorded.
    """

    model_config = ConfigDict(frozen=True)

    is_verified: bool
    rejection_reason: str = ""
    required_documents: List[str] = []
    admin_notes: str = ""

    @field_validator("required_documents")
    @classmethod
    def strip_documents(cls, v: List[str]) -> List[str]:
        return [doc.strip() for doc in v if doc and doc.strip()]

    @model_validator(mode="after")
    def default_rejection_reason(self) -> VerifyFarmerDTO:
        if not self.is_verified and not self.rejection_reason.strip():
            object.__setattr__(self, "rejection_reason", "General rejection")
        return self
