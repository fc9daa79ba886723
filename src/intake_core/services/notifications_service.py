"""Notifications service.

Creates in-app notifications and sends the lead-matched email to firm
administrators. Delivery is best effort: failures are logged and reported per
recipient, never raised to the caller that created the match.
"""

from __future__ import annotations

import asyncio
import html
import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.clients.email_client import EmailClient, get_email_client
from intake_core.config import get_settings
from intake_core.database.models import Match, Notification, Profile, utc_now
from intake_core.exceptions import AuthorizationError, DatabaseError, NotFoundError
from intake_core.models.notifications import (
    AdminDeliveryResult,
    MatchNotificationResult,
    NotificationListResponse,
    NotificationResponse,
)
from intake_core.repositories.firms_repository import ProfilesRepository
from intake_core.repositories.matches_repository import MatchesRepository
from intake_core.repositories.notifications_repository import NotificationsRepository
from intake_core.services.lead_scoring import effective_urgency

logger = logging.getLogger(__name__)

LEAD_MATCHED = "lead_matched"
LEAD_CLAIMED = "lead_claimed"


def match_email_subject(area: str, score: float) -> str:
    subject = f"New {area} Lead"
    if score >= 0.8:
        subject += " - Excellent Match!"
    elif score >= 0.6:
        subject += " - Good Match"
    return subject


def match_message(score: float) -> str:
    return f"You've been matched with a new potential client. Match score: {round(score * 100)}%"


def _lead_email_html(firm_name: str, area: str, urgency: int, description: str, link: str) -> str:
    return (
        f"<h2>New {html.escape(area)} lead for {html.escape(firm_name)}</h2>"
        f"<p><strong>Urgency:</strong> {urgency}/10</p>"
        f"<p><strong>Case:</strong> {html.escape(description)}</p>"
        f'<p><a href="{html.escape(link)}">View and claim this lead</a></p>'
    )


class NotificationsService:
    """Service for match, claim and billing notifications."""

    def __init__(self, session: AsyncSession, email_client: Optional[EmailClient] = None) -> None:
        self.session = session
        self._repo = NotificationsRepository(session)
        self._matches = MatchesRepository(session)
        self._profiles = ProfilesRepository(session)
        self._email = email_client or get_email_client()
        self._settings = get_settings()

    async def notify_match(self, match_id: str) -> MatchNotificationResult:
        """
        Tell a firm's administrators about a new match.

        A lead_matched notification for the same match within the duplicate
        window short-circuits the call. Emails go out concurrently; one admin's
        failure does not affect the others.
        """
        window = timedelta(minutes=self._settings.matching.duplicate_window_minutes)
        if await self._repo.exists_for_match_since(match_id, utc_now() - window):
            logger.info(f"Skipping duplicate notification for match {match_id}")
            return MatchNotificationResult(match_id=match_id, skipped=True, reason="duplicate")

        match = await self._matches.get_with_details(match_id)
        if match is None:
            raise NotFoundError("Match", match_id)

        lead = match.lead
        area = lead.practice_area.name if lead.practice_area else "Legal"
        urgency = effective_urgency(lead.conversation)
        link = f"/admin/leads/{lead.id}"
        title = f"New {area} Lead"
        message = match_message(match.match_score)
        metadata = {"matchId": match.id, "matchScore": match.match_score, "urgency": urgency}

        admins = await self._profiles.list_firm_admins(match.law_firm_id)
        if not admins:
            logger.warning(f"No admins found for firm {match.law_firm_id}; creating firm notification")
            await self._repo.create(
                law_firm_id=match.law_firm_id,
                match_id=match.id,
                type=LEAD_MATCHED,
                title=title,
                message=message,
                link=link,
                notification_metadata=metadata,
            )
            return MatchNotificationResult(match_id=match_id, reason="no_admins")

        logger.info(f"Sending match notifications to {len(admins)} admin(s) of firm {match.law_firm_id}")
        subject = match_email_subject(area, match.match_score)
        body = _lead_email_html(
            match.law_firm.name,
            area,
            urgency,
            lead.conversation.case_description or "No description provided",
            f"{self._settings.email.app_url.rstrip('/')}{link}",
        )
        sends = await asyncio.gather(
            *(self._email.send(admin.email, subject, body) for admin in admins),
            return_exceptions=True,
        )

        results: List[AdminDeliveryResult] = []
        for admin, sent in zip(admins, sends):
            result = AdminDeliveryResult(user_id=admin.id)
            if isinstance(sent, BaseException):
                logger.error(f"Email to admin {admin.id} failed: {sent}")
                result.error = str(sent)
            else:
                result.email_sent = bool(sent.get("sent"))

            # SAVEPOINT per row: a failed insert must leave the caller's session usable
            try:
                async with self.session.begin_nested():
                    await self._repo.create(
                        user_id=admin.id,
                        law_firm_id=match.law_firm_id,
                        match_id=match.id,
                        type=LEAD_MATCHED,
                        title=title,
                        message=message,
                        link=link,
                        notification_metadata=metadata,
                    )
                result.notification_created = True
            except DatabaseError as e:
                logger.error(f"Notification for admin {admin.id} failed: {e}")
                result.error = result.error or e.message
            results.append(result)

        delivered = sum(1 for r in results if r.notification_created)
        logger.info(f"Match {match_id} notifications complete: {delivered}/{len(results)} created")
        return MatchNotificationResult(match_id=match_id, results=results)

    async def notify_lead_unavailable(self, matches: Iterable[Match]) -> int:
        """One firm-level notice per firm whose match expired because another firm claimed the lead."""
        created = 0
        for match in matches:
            await self._repo.create(
                law_firm_id=match.law_firm_id,
                match_id=match.id,
                type=LEAD_CLAIMED,
                title="Lead No Longer Available",
                message="A lead you were matched with has been claimed by another firm.",
                link="/admin/leads",
            )
            created += 1
        return created

    async def notify_firm_admins(
        self, firm_id: str, type: str, title: str, message: str, link: Optional[str] = None
    ) -> int:
        """Create the same notification for every administrator of a firm."""
        admins = await self._profiles.list_firm_admins(firm_id)
        for admin in admins:
            await self._repo.create(
                user_id=admin.id,
                law_firm_id=firm_id,
                type=type,
                title=title,
                message=message,
                link=link,
            )
        return len(admins)

    async def list_for_user(
        self, profile: Profile, unread_only: bool = False, limit: int = 50
    ) -> NotificationListResponse:
        notifications = await self._repo.list_for_recipient(
            profile.id, profile.law_firm_id, unread_only=unread_only, limit=limit
        )
        items = [NotificationResponse.model_validate(n) for n in notifications]
        return NotificationListResponse(
            notifications=items,
            unread_count=sum(1 for n in items if not n.read),
        )

    async def mark_read(self, notification_id: str, profile: Profile) -> NotificationResponse:
        notification = await self._repo.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if not self._is_recipient(notification, profile):
            raise AuthorizationError("Not allowed to modify this notification")
        notification = await self._repo.mark_read(notification)
        return NotificationResponse.model_validate(notification)

    @staticmethod
    def _is_recipient(notification: Notification, profile: Profile) -> bool:
        if notification.user_id is not None:
            return notification.user_id == profile.id
        return notification.law_firm_id is not None and notification.law_firm_id == profile.law_firm_id


def get_notifications_service(session: AsyncSession) -> NotificationsService:
    """Factory for NotificationsService."""
    return NotificationsService(session=session)
