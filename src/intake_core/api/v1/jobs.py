"""Internal job endpoints (manual runs of scheduled maintenance; require internal API key)."""

import logging

from fastapi import APIRouter, status

from intake_core.auth.internal_service import InternalAuthDep
from intake_core.database.session import get_session_context
from intake_core.models.leads import MaintenanceResult
from intake_core.services.claim_service import get_claim_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "/expire-matches",
    response_model=MaintenanceResult,
    status_code=status.HTTP_200_OK,
    summary="Expire stale matches",
    description=(
        "Expires pending matches older than the match expiry window and the matched leads "
        "left without a pending match. Safe to re-run. Requires X-Internal-API-Key."
    ),
    dependencies=[InternalAuthDep],
)
async def expire_matches() -> MaintenanceResult:
    async with get_session_context() as session:
        return await get_claim_service(session).expire_stale_matches()


@router.post(
    "/reset-monthly-usage",
    response_model=MaintenanceResult,
    status_code=status.HTTP_200_OK,
    summary="Reset monthly lead usage",
    description="Zeroes leads_used_this_month for firms with an active subscription. Requires X-Internal-API-Key.",
    dependencies=[InternalAuthDep],
)
async def reset_monthly_usage() -> MaintenanceResult:
    async with get_session_context() as session:
        return await get_claim_service(session).reset_monthly_lead_counts()
