"""Matches repository for data access operations."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from intake_core.database.models import Lead, Match, utc_now
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchesRepository(BaseRepository[Match]):
    """Repository for lead-to-firm matches."""

    def __init__(self, session: AsyncSession):
        super().__init__(Match, session)

    async def get_with_details(self, match_id: str) -> Optional[Match]:
        """Get a match with its firm, lead, conversation and practice area loaded."""
        try:
            result = await self.session.execute(
                select(Match)
                .where(Match.id == match_id)
                .options(
                    selectinload(Match.law_firm),
                    selectinload(Match.lead).selectinload(Lead.conversation),
                    selectinload(Match.lead).selectinload(Lead.practice_area),
                )
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting match {match_id} with details: {e}")
            raise DatabaseError("Failed to retrieve match") from e

    async def delete_pending_for_lead(self, lead_id: str) -> int:
        """Remove pending matches so a lead can be re-scored."""
        try:
            result = await self.session.execute(
                delete(Match)
                .where(Match.lead_id == lead_id, Match.status == "pending")
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting pending matches for lead {lead_id}: {e}")
            raise DatabaseError("Failed to delete matches") from e

    async def accept_for_firm(self, lead_id: str, firm_id: str) -> int:
        """Mark the claiming firm's pending match as accepted."""
        try:
            result = await self.session.execute(
                update(Match)
                .where(
                    Match.lead_id == lead_id,
                    Match.law_firm_id == firm_id,
                    Match.status == "pending",
                )
                .values(status="accepted", updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error accepting match for lead {lead_id}, firm {firm_id}: {e}")
            raise DatabaseError("Failed to update match") from e

    async def expire_pending_except(self, lead_id: str, firm_id: str) -> List[Match]:
        """
        Expire every pending match of the lead that belongs to another firm.

        Returns:
            The matches that were expired (with their previous firm ids).
        """
        try:
            result = await self.session.execute(
                select(Match).where(
                    Match.lead_id == lead_id,
                    Match.law_firm_id != firm_id,
                    Match.status == "pending",
                )
            )
            others = list(result.scalars().all())
            if not others:
                return []

            for match in others:
                match.status = "expired"
            await self.session.flush()
            return others
        except SQLAlchemyError as e:
            logger.error(f"Error expiring competing matches for lead {lead_id}: {e}")
            raise DatabaseError("Failed to expire matches") from e

    async def expire_stale(self, cutoff: datetime) -> int:
        """Expire pending matches created before cutoff."""
        try:
            result = await self.session.execute(
                update(Match)
                .where(Match.status == "pending", Match.created_at < cutoff)
                .values(status="expired", updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error expiring stale matches: {e}")
            raise DatabaseError("Failed to expire matches") from e
