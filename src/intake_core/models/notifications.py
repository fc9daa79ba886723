"""Pydantic models for notifications endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    """A notification as shown in the dashboard inbox."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    type: str
    title: str
    message: str
    link: Optional[str] = None
    law_firm_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="notification_metadata")
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class AdminDeliveryResult(BaseModel):
    """Outcome of notifying one firm administrator."""

    user_id: str
    email_sent: bool = False
    notification_created: bool = False
    error: Optional[str] = None


class MatchNotificationResult(BaseModel):
    match_id: str
    skipped: bool = False
    reason: Optional[str] = None
    results: List[AdminDeliveryResult] = Field(default_factory=list)
