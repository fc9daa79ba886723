"""Notifications repository for data access operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.database.models import Notification, utc_now
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class NotificationsRepository(BaseRepository[Notification]):
    """Repository for notification data access operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def exists_for_match_since(self, match_id: str, since: datetime) -> bool:
        """Whether a match notification was already created after `since`."""
        try:
            result = await self.session.execute(
                select(Notification.id)
                .where(
                    Notification.match_id == match_id,
                    Notification.type == "lead_matched",
                    Notification.created_at >= since,
                )
                .limit(1)
            )
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking recent notifications for match {match_id}: {e}")
            raise DatabaseError("Failed to retrieve notifications") from e

    async def list_for_recipient(
        self,
        user_id: str,
        firm_id: Optional[str],
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        """Notifications addressed to the user, plus firm-wide ones for the user's firm."""
        try:
            audience = Notification.user_id == user_id
            if firm_id:
                audience = or_(
                    audience,
                    and_(Notification.law_firm_id == firm_id, Notification.user_id.is_(None)),
                )
            query = select(Notification).where(audience)
            if unread_only:
                query = query.where(Notification.read.is_(False))
            result = await self.session.execute(
                query.order_by(Notification.created_at.desc()).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications for user {user_id}: {e}")
            raise DatabaseError("Failed to retrieve notifications") from e

    async def mark_read(self, notification: Notification) -> Notification:
        try:
            if not notification.read:
                notification.read = True
                notification.read_at = utc_now()
                await self.session.flush()
            return notification
        except SQLAlchemyError as e:
            logger.error(f"Error marking notification {notification.id} read: {e}")
            raise DatabaseError("Failed to update notification") from e
