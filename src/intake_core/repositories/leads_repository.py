"""Leads repository for data access operations."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import and_, exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from intake_core.database.models import Lead, LeadActivity, Match, utc_now
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

CLAIMABLE_STATUSES = ("new", "matched")


class LeadsRepository(BaseRepository[Lead]):
    """Repository for lead data access operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Lead, session)

    async def get_with_details(self, lead_id: str) -> Optional[Lead]:
        """Get a lead with its conversation and practice area loaded."""
        try:
            result = await self.session.execute(
                select(Lead)
                .where(Lead.id == lead_id)
                .options(selectinload(Lead.conversation), selectinload(Lead.practice_area))
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting lead {lead_id} with details: {e}")
            raise DatabaseError("Failed to retrieve lead") from e

    async def get_by_conversation_id(self, conversation_id: str) -> Optional[Lead]:
        try:
            result = await self.session.execute(
                select(Lead).where(Lead.conversation_id == conversation_id).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting lead for conversation {conversation_id}: {e}")
            raise DatabaseError("Failed to retrieve lead") from e

    async def claim(self, lead_id: str, firm_id: str, user_id: Optional[str]) -> bool:
        """
        Claim a lead for a firm with a single conditional UPDATE.

        The row only changes while claimed_by_firm_id is still NULL, so of two
        concurrent claims exactly one sees an affected row.

        Returns:
            True if this call claimed the lead.
        """
        now = utc_now()
        try:
            result = await self.session.execute(
                update(Lead)
                .where(
                    Lead.id == lead_id,
                    Lead.claimed_by_firm_id.is_(None),
                    Lead.status.in_(CLAIMABLE_STATUSES),
                )
                .values(
                    status="claimed",
                    claimed_at=now,
                    claimed_by_firm_id=firm_id,
                    claimed_by_user_id=user_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error claiming lead {lead_id} for firm {firm_id}: {e}")
            raise DatabaseError("Failed to claim lead") from e

    async def expire_unclaimed(self, cutoff: datetime) -> int:
        """
        Expire matched leads older than cutoff that were never claimed and have
        no pending match left.

        Returns:
            Number of leads expired.
        """
        pending_match = exists().where(and_(Match.lead_id == Lead.id, Match.status == "pending"))
        try:
            result = await self.session.execute(
                update(Lead)
                .where(
                    Lead.status == "matched",
                    Lead.claimed_at.is_(None),
                    Lead.created_at < cutoff,
                    ~pending_match,
                )
                .values(status="expired", updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error expiring unclaimed leads: {e}")
            raise DatabaseError("Failed to expire leads") from e

    async def add_activity(
        self,
        lead_id: str,
        activity_type: str,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> LeadActivity:
        """Append an entry to the lead's activity log."""
        try:
            activity = LeadActivity(
                lead_id=lead_id,
                user_id=user_id,
                activity_type=activity_type,
                details=details or {},
            )
            self.session.add(activity)
            await self.session.flush()
            return activity
        except SQLAlchemyError as e:
            logger.error(f"Error logging {activity_type} activity for lead {lead_id}: {e}")
            raise DatabaseError("Failed to log lead activity") from e
