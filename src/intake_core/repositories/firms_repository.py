"""Law firm, practice area and profile repositories."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.database.models import LawFirm, LawFirmPracticeArea, PracticeArea, Profile, utc_now
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class FirmsRepository(BaseRepository[LawFirm]):
    """Repository for law firms and their usage counters."""

    def __init__(self, session: AsyncSession):
        super().__init__(LawFirm, session)

    async def get_by_stripe_customer_id(self, customer_id: str) -> Optional[LawFirm]:
        try:
            result = await self.session.execute(
                select(LawFirm).where(LawFirm.stripe_customer_id == customer_id).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting firm by Stripe customer {customer_id}: {e}")
            raise DatabaseError("Failed to retrieve law firm") from e

    async def list_eligible_for_practice_area(
        self, practice_area_id: str, free_tier_limit: int
    ) -> List[Tuple[LawFirm, Optional[int]]]:
        """
        Firms offering the practice area that may still receive leads.

        A firm is eligible with an active subscription, or on the free tier
        while under the free monthly allowance.

        Returns:
            (firm, experience_years) pairs.
        """
        try:
            result = await self.session.execute(
                select(LawFirm, LawFirmPracticeArea.experience_years)
                .join(LawFirmPracticeArea, LawFirmPracticeArea.law_firm_id == LawFirm.id)
                .where(
                    LawFirmPracticeArea.practice_area_id == practice_area_id,
                    or_(
                        LawFirm.subscription_status == "active",
                        and_(
                            LawFirm.subscription_tier == "free",
                            LawFirm.leads_used_this_month < free_tier_limit,
                        ),
                    ),
                )
            )
            return [(row[0], row[1]) for row in result.all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing eligible firms for practice area {practice_area_id}: {e}")
            raise DatabaseError("Failed to retrieve law firms") from e

    async def increment_usage(self, firm_id: str) -> None:
        """Add one claimed lead to the firm's monthly usage (SQL-side increment)."""
        try:
            await self.session.execute(
                update(LawFirm)
                .where(LawFirm.id == firm_id)
                .values(
                    leads_used_this_month=LawFirm.leads_used_this_month + 1,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            logger.error(f"Error incrementing usage for firm {firm_id}: {e}")
            raise DatabaseError("Failed to update firm usage") from e

    async def reset_monthly_usage(self) -> int:
        """Zero the monthly usage of every firm with an active subscription."""
        try:
            result = await self.session.execute(
                update(LawFirm)
                .where(LawFirm.subscription_status == "active")
                .values(leads_used_this_month=0, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error resetting monthly lead counts: {e}")
            raise DatabaseError("Failed to reset monthly lead counts") from e


class PracticeAreasRepository(BaseRepository[PracticeArea]):
    """Repository for the practice area taxonomy."""

    def __init__(self, session: AsyncSession):
        super().__init__(PracticeArea, session)

    async def get_by_name(self, name: str) -> Optional[PracticeArea]:
        """Case-insensitive lookup by practice area name."""
        try:
            result = await self.session.execute(
                select(PracticeArea).where(func.lower(PracticeArea.name) == name.strip().lower()).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting practice area {name!r}: {e}")
            raise DatabaseError("Failed to retrieve practice area") from e


class ProfilesRepository(BaseRepository[Profile]):
    """Read access to auth-provider profiles."""

    def __init__(self, session: AsyncSession):
        super().__init__(Profile, session)

    async def list_firm_admins(self, firm_id: str) -> List[Profile]:
        try:
            result = await self.session.execute(
                select(Profile).where(Profile.law_firm_id == firm_id, Profile.role == "legal_admin")
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing admins for firm {firm_id}: {e}")
            raise DatabaseError("Failed to retrieve firm administrators") from e
