"""Subscriptions repository for data access operations."""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.database.models import Subscription
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SubscriptionsRepository(BaseRepository[Subscription]):
    """Repository for Stripe-backed firm subscriptions."""

    def __init__(self, session: AsyncSession):
        super().__init__(Subscription, session)

    async def get_by_stripe_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        try:
            result = await self.session.execute(
                select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting subscription {stripe_subscription_id}: {e}")
            raise DatabaseError("Failed to retrieve subscription") from e

    async def upsert(self, stripe_subscription_id: str, **fields: Any) -> Subscription:
        """Create or update the subscription keyed by its Stripe id."""
        existing = await self.get_by_stripe_id(stripe_subscription_id)
        if existing is None:
            return await self.create(stripe_subscription_id=stripe_subscription_id, **fields)
        return await self.update(existing.id, **fields)
