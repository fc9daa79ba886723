"""Exclusive lead claiming and match maintenance."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.config import get_settings
from intake_core.database.models import LawFirm, utc_now
from intake_core.models.leads import ClaimLeadResponse, MaintenanceResult
from intake_core.repositories.firms_repository import FirmsRepository
from intake_core.repositories.leads_repository import LeadsRepository
from intake_core.repositories.matches_repository import MatchesRepository
from intake_core.services.notifications_service import NotificationsService

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "You have reached your monthly lead limit. Please upgrade your subscription to claim more leads."
)
ALREADY_CLAIMED_MESSAGE = "This lead has already been claimed by another firm."
CLAIMED_MESSAGE = "Lead claimed successfully! Client contact information is now available."


def can_firm_claim(firm: LawFirm, free_tier_limit: int) -> bool:
    """
    Whether the firm has monthly quota left.

    Without an active subscription only the free tier may claim, up to the
    free allowance. Active subscriptions are bounded by their plan's limit.
    """
    if firm.subscription_status != "active":
        return firm.subscription_tier == "free" and firm.leads_used_this_month < free_tier_limit
    return firm.leads_used_this_month < firm.monthly_lead_limit


class ClaimService:
    """
    Claim arbiter.

    Exclusivity comes from a single conditional UPDATE on the lead row; there
    is no application-level lock. Everything a successful claim implies runs
    in the caller's transaction.
    """

    def __init__(self, session: AsyncSession, notifier: Optional[NotificationsService] = None) -> None:
        self.session = session
        self._leads = LeadsRepository(session)
        self._matches = MatchesRepository(session)
        self._firms = FirmsRepository(session)
        self._notifier = notifier or NotificationsService(session)
        self._settings = get_settings().matching

    async def claim_lead(self, lead_id: str, firm_id: str, user_id: Optional[str] = None) -> ClaimLeadResponse:
        lead = await self._leads.get_by_id(lead_id)
        if lead is None:
            return ClaimLeadResponse(success=False, status="not_found", message="Lead not found", lead_id=lead_id)

        firm = await self._firms.get_by_id(firm_id)
        if firm is None or not can_firm_claim(firm, self._settings.free_tier_lead_limit):
            logger.info(f"Firm {firm_id} cannot claim lead {lead_id}: monthly quota exhausted")
            return ClaimLeadResponse(
                success=False, status="quota_exceeded", message=QUOTA_EXCEEDED_MESSAGE, lead_id=lead_id
            )

        if not await self._leads.claim(lead_id, firm_id, user_id):
            logger.info(f"Firm {firm_id} lost the claim race for lead {lead_id}")
            return ClaimLeadResponse(
                success=False, status="already_claimed", message=ALREADY_CLAIMED_MESSAGE, lead_id=lead_id
            )

        await self._matches.accept_for_firm(lead_id, firm_id)
        expired = await self._matches.expire_pending_except(lead_id, firm_id)
        await self._notifier.notify_lead_unavailable(expired)
        await self._firms.increment_usage(firm_id)
        await self._leads.add_activity(
            lead_id,
            "claimed",
            user_id=user_id,
            details={"law_firm_id": firm_id, "matches_expired": len(expired)},
        )

        await self.session.refresh(lead)
        logger.info(f"Lead {lead_id} claimed by firm {firm_id}; {len(expired)} competing match(es) expired")
        return ClaimLeadResponse(
            success=True,
            status="claimed",
            message=CLAIMED_MESSAGE,
            lead_id=lead_id,
            claimed_at=lead.claimed_at,
        )

    async def expire_stale_matches(self, max_age: Optional[timedelta] = None) -> MaintenanceResult:
        """
        Expire pending matches older than max_age, then the matched leads left
        with no pending match that were never claimed. Re-running is a no-op.
        """
        max_age = max_age or timedelta(hours=self._settings.match_expiry_hours)
        cutoff = utc_now() - max_age
        matches_expired = await self._matches.expire_stale(cutoff)
        leads_expired = await self._leads.expire_unclaimed(cutoff)
        if matches_expired or leads_expired:
            logger.info(f"Expired {matches_expired} stale match(es) and {leads_expired} lead(s)")
        return MaintenanceResult(matches_expired=matches_expired, leads_expired=leads_expired)

    async def reset_monthly_lead_counts(self) -> MaintenanceResult:
        firms_reset = await self._firms.reset_monthly_usage()
        logger.info(f"Reset monthly lead usage for {firms_reset} firm(s)")
        return MaintenanceResult(firms_reset=firms_reset)


def get_claim_service(session: AsyncSession) -> ClaimService:
    """Factory for ClaimService."""
    return ClaimService(session=session)
