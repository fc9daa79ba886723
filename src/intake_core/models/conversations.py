"""Pydantic models for conversation lifecycle endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CreateConversationResponse(BaseModel):
    conversation_id: str = Field(..., description="Vendor conversation id")
    conversation_url: str = Field(..., description="URL the client joins")
    status: Optional[str] = None


class EndConversationRequest(BaseModel):
    """Contact details collected by the client before the call ended."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    case_description: Optional[str] = None
    urgency_score: Optional[int] = Field(None, ge=1, le=10)


class EndConversationResponse(BaseModel):
    conversation_id: str
    status: str
