"""Lead-to-firm matching.

`MatchAllocator` turns a lead into scored `pending` matches, one per eligible
firm that offers the lead's practice area. How a firm is scored is delegated to
a `MatchScorer`; `WeightedMatchScorer` is the default:

    practice area   40%   (offers the area, plus years of experience)
    performance     25%   (rating, success rate, converted leads)
    availability    15%   (quota headroom, response time)
    location        10%   (exact / partial / different)
    quality fit     10%   (premium firm vs high-quality lead, urgent cases)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.config import get_settings
from intake_core.database.models import Conversation, LawFirm, Lead, Match
from intake_core.repositories.firms_repository import FirmsRepository
from intake_core.repositories.leads_repository import LeadsRepository
from intake_core.repositories.matches_repository import MatchesRepository
from intake_core.services.lead_scoring import effective_urgency
from intake_core.services.notifications_service import NotificationsService

logger = logging.getLogger(__name__)


@dataclass
class MatchCandidate:
    """Everything a scorer may look at for one (lead, firm) pair."""

    lead: Lead
    conversation: Conversation
    firm: LawFirm
    experience_years: int = 0


@dataclass
class MatchScore:
    score: float
    breakdown: Dict[str, Any] = field(default_factory=dict)


class MatchScorer(Protocol):
    def score(self, candidate: MatchCandidate) -> MatchScore: ...


class WeightedMatchScorer:
    """Weighted sum of five component scores, each in [0, 1]."""

    weights = {
        "practice_area": 0.40,
        "performance": 0.25,
        "availability": 0.15,
        "location": 0.10,
        "quality_fit": 0.10,
    }

    def score(self, candidate: MatchCandidate) -> MatchScore:
        firm = candidate.firm
        components = {
            "practice_area": self._practice_area(candidate.experience_years),
            "performance": self._performance(firm),
            "availability": self._availability(firm),
            "location": self._location(candidate.conversation.firm_location, firm.location),
            "quality_fit": self._quality_fit(
                candidate.lead.quality_score, effective_urgency(candidate.conversation), firm
            ),
        }
        total = sum(components[name] * weight for name, weight in self.weights.items())
        breakdown: Dict[str, Any] = {f"{name}_score": round(value, 4) for name, value in components.items()}
        breakdown.update(
            experience_years=candidate.experience_years,
            firm_rating=firm.rating,
            avg_response_time=firm.avg_response_time_minutes,
        )
        return MatchScore(score=max(0.0, min(1.0, round(total, 4))), breakdown=breakdown)

    @staticmethod
    def _practice_area(experience_years: int) -> float:
        if experience_years >= 10:
            return 1.0
        if experience_years >= 5:
            return 0.9
        if experience_years >= 2:
            return 0.8
        return 0.7

    @staticmethod
    def _performance(firm: LawFirm) -> float:
        rating = firm.rating / 5.0 if firm.rating is not None else 0.5
        success = firm.success_rate if firm.success_rate is not None else 0.5
        converted = firm.total_leads_converted or 0
        if converted >= 50:
            conversion = 1.0
        elif converted >= 20:
            conversion = 0.8
        elif converted >= 10:
            conversion = 0.6
        elif converted >= 5:
            conversion = 0.4
        else:
            conversion = 0.3
        return rating * 0.4 + success * 0.4 + conversion * 0.2

    @staticmethod
    def _availability(firm: LawFirm) -> float:
        if firm.monthly_lead_limit and firm.monthly_lead_limit > 0:
            usage = firm.leads_used_this_month / firm.monthly_lead_limit
            if usage < 0.5:
                availability = 1.0
            elif usage < 0.75:
                availability = 0.7
            elif usage < 0.9:
                availability = 0.4
            else:
                availability = 0.2
        else:
            availability = 0.1

        minutes = firm.avg_response_time_minutes
        if minutes is not None:
            if minutes < 120:
                response = 1.0
            elif minutes < 240:
                response = 0.8
            elif minutes < 480:
                response = 0.6
            else:
                response = 0.4
            availability = availability * 0.7 + response * 0.3
        return availability

    @staticmethod
    def _location(lead_location: Optional[str], firm_location: Optional[str]) -> float:
        if not lead_location or not firm_location:
            return 0.5
        lead_location = lead_location.strip().lower()
        firm_location = firm_location.strip().lower()
        if lead_location == firm_location:
            return 1.0
        if lead_location in firm_location or firm_location in lead_location:
            return 0.7
        return 0.3

    @staticmethod
    def _quality_fit(quality_score: Optional[float], urgency: int, firm: LawFirm) -> float:
        if quality_score is None:
            return 0.5
        premium = firm.subscription_tier in ("pro", "enterprise")
        high_quality = quality_score >= 75
        if premium and high_quality:
            fit = 1.0
        elif premium:
            fit = 0.7
        elif high_quality:
            fit = 0.8
        else:
            fit = 0.6
        # Fast responders get a bump on urgent cases
        if urgency >= 8 and firm.avg_response_time_minutes is not None and firm.avg_response_time_minutes < 180:
            fit *= 1.1
        return min(fit, 1.0)


class MatchAllocator:
    """Creates pending matches for a lead and notifies the matched firms."""

    def __init__(
        self,
        session: AsyncSession,
        scorer: Optional[MatchScorer] = None,
        notifier: Optional[NotificationsService] = None,
    ) -> None:
        self.session = session
        self.scorer = scorer or WeightedMatchScorer()
        self._notifier = notifier or NotificationsService(session)
        self._leads = LeadsRepository(session)
        self._matches = MatchesRepository(session)
        self._firms = FirmsRepository(session)
        self._settings = get_settings().matching

    async def allocate(self, lead_id: str) -> List[Match]:
        """
        Score every eligible firm for the lead and persist the pending matches.

        Pending matches from an earlier run are replaced. The lead ends up
        `matched` (and its conversation `matched`) when at least one match was
        created, `unmatched` otherwise.

        Returns:
            The created matches, best score first.
        """
        lead = await self._leads.get_with_details(lead_id)
        if lead is None:
            logger.warning(f"Cannot allocate unknown lead {lead_id}")
            return []

        await self._matches.delete_pending_for_lead(lead.id)

        created: List[Match] = []
        if lead.practice_area_id:
            eligible = await self._firms.list_eligible_for_practice_area(
                lead.practice_area_id, self._settings.free_tier_lead_limit
            )
            for firm, experience_years in eligible:
                result = self.scorer.score(
                    MatchCandidate(lead, lead.conversation, firm, experience_years or 0)
                )
                if result.score < self._settings.min_score:
                    logger.debug(f"Firm {firm.id} scored {result.score} for lead {lead.id}; below threshold")
                    continue
                created.append(
                    await self._matches.create(
                        lead_id=lead.id,
                        law_firm_id=firm.id,
                        match_score=result.score,
                        status="pending",
                        match_metadata=result.breakdown,
                    )
                )

        created.sort(key=lambda m: m.match_score, reverse=True)
        if created:
            lead.status = "matched"
            lead.conversation.status = "matched"
        else:
            lead.status = "unmatched"
        await self.session.flush()

        await self._leads.add_activity(
            lead.id,
            "matched",
            details={"matches": len(created), "firm_ids": [m.law_firm_id for m in created]},
        )
        logger.info(f"Lead {lead.id} allocated to {len(created)} firm(s)")

        for match in created:
            await self._notify(match)
        return created

    async def _notify(self, match: Match) -> None:
        # Rolled back to the savepoint on failure; the matches stay
        try:
            async with self.session.begin_nested():
                await self._notifier.notify_match(match.id)
        except Exception as e:
            logger.error(f"Notification for match {match.id} failed: {e}")


def get_match_allocator(session: AsyncSession) -> MatchAllocator:
    """Factory for MatchAllocator."""
    return MatchAllocator(session=session)
