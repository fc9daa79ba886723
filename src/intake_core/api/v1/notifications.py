"""Notification inbox endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from intake_core.auth.dependencies import get_current_profile
from intake_core.database.models import Profile
from intake_core.database.session import get_session_context
from intake_core.dependencies import rate_limit
from intake_core.models.notifications import NotificationListResponse, NotificationResponse
from intake_core.services.notifications_service import get_notifications_service
from intake_core.services.rate_limit_service import AUTHENTICATED

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[rate_limit(AUTHENTICATED)])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Notifications addressed to the caller plus firm-wide notifications for the caller's firm.",
)
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    profile: Profile = Depends(get_current_profile),
) -> NotificationListResponse:
    async with get_session_context() as session:
        return await get_notifications_service(session).list_for_user(profile, unread_only, limit)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification read",
)
async def mark_notification_read(
    notification_id: str,
    profile: Profile = Depends(get_current_profile),
) -> NotificationResponse:
    async with get_session_context() as session:
        return await get_notifications_service(session).mark_read(notification_id, profile)
