"""Lead maintenance Celery tasks.

Each run opens its own engine: worker processes run every task on a fresh
event loop, and pooled asyncpg connections cannot cross loops.
"""

import logging
from typing import Awaitable, Callable, Optional

from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intake_core.database.connection import create_engine
from intake_core.models.leads import MaintenanceResult
from intake_core.services.claim_service import ClaimService
from intake_core.utils.async_helpers import run_async

logger = logging.getLogger(__name__)

Operation = Callable[[ClaimService], Awaitable[MaintenanceResult]]


async def _with_session(
    operation: Operation,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> dict:
    """Run a ClaimService operation in one committed transaction."""
    engine = None
    if session_factory is None:
        engine = create_engine()
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            try:
                result = await operation(ClaimService(session))
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return result.model_dump()
    finally:
        if engine is not None:
            await engine.dispose()


@shared_task(
    bind=True,
    name="intake_core.tasks.maintenance.expire_stale_matches",
    max_retries=3,
    default_retry_delay=60,
)
def expire_stale_matches(self) -> dict:
    """
    Expire pending matches older than the match expiry window.

    Triggered hourly by Celery Beat; also available as POST /api/v1/jobs/expire-matches.
    """
    try:
        result = run_async(_with_session(lambda service: service.expire_stale_matches()))
        logger.info("Stale match expiry completed", extra={"extra_fields": result})
        return result
    except Exception as e:
        logger.error(f"Stale match expiry failed: {e}", exc_info=True)
        raise self.retry(exc=e)


@shared_task(
    bind=True,
    name="intake_core.tasks.maintenance.reset_monthly_lead_usage",
    max_retries=3,
    default_retry_delay=300,
)
def reset_monthly_lead_usage(self) -> dict:
    """Zero the monthly claim counters of subscribed firms."""
    try:
        result = run_async(_with_session(lambda service: service.reset_monthly_lead_counts()))
        logger.info("Monthly lead usage reset completed", extra={"extra_fields": result})
        return result
    except Exception as e:
        logger.error(f"Monthly lead usage reset failed: {e}", exc_info=True)
        raise self.retry(exc=e)
