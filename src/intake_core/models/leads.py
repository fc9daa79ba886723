"""Pydantic models for lead extraction and claiming."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CASE_CATEGORIES = (
    "Personal Injury",
    "Family Law",
    "Criminal Defense",
    "Immigration",
    "Estate Planning",
    "Business Law",
    "Real Estate",
    "Employment Law",
    "Bankruptcy",
    "Intellectual Property",
)

_EMPTY_MARKERS = {"", "null", "none", "n/a", "unknown", "not mentioned", "not provided"}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() in _EMPTY_MARKERS:
        return None
    if isinstance(value, str):
        return value.strip()
    return value


class ExtractedContact(BaseModel):
    """Client details found in the transcript (best effort)."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    case_description: Optional[str] = None

    @field_validator("name", "email", "phone", "case_description", mode="before")
    @classmethod
    def normalize_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)


class ExtractedLead(BaseModel):
    """Structured lead returned by the extraction model."""

    model_config = ConfigDict(populate_by_name=True)

    case_category: Optional[str] = Field(None, alias="caseCategory")
    firm_location: Optional[str] = Field(None, alias="firmLocation")
    urgency_score: int = Field(5, alias="openaiUrgencyScore", ge=1, le=10)
    extracted_data: ExtractedContact = Field(default_factory=ExtractedContact, alias="extractedData")

    @field_validator("case_category", "firm_location", mode="before")
    @classmethod
    def normalize_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("urgency_score", mode="before")
    @classmethod
    def clamp_urgency(cls, v: Any) -> int:
        if v is None:
            return 5
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            raise ValueError("urgency score must be a number")
        number = float(v.strip()) if isinstance(v, str) else float(v)
        if not math.isfinite(number):
            raise ValueError("urgency score must be finite")
        return max(1, min(10, int(round(number))))

    @field_validator("extracted_data", mode="before")
    @classmethod
    def default_contact(cls, v: Any) -> Any:
        return v if v is not None else {}


class LeadExtractionRequest(BaseModel):
    """Internal trigger for the extraction pipeline."""

    conversationId: Optional[str] = None
    transcript: Optional[str] = None


class ClaimLeadRequest(BaseModel):
    """Claim request; system admins must name the firm explicitly."""

    law_firm_id: Optional[str] = Field(None, description="Firm claiming the lead (system admins only)")


ClaimStatus = Literal["claimed", "quota_exceeded", "already_claimed", "not_found"]


class ClaimLeadResponse(BaseModel):
    success: bool
    status: ClaimStatus
    message: str
    lead_id: str
    claimed_at: Optional[datetime] = None


class MaintenanceResult(BaseModel):
    """Counts reported by scheduled maintenance jobs."""

    matches_expired: int = 0
    leads_expired: int = 0
    firms_reset: int = 0
