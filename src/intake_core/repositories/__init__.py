"""Repository layer for data access."""

from intake_core.repositories.base import BaseRepository
from intake_core.repositories.conversations_repository import ConversationsRepository
from intake_core.repositories.firms_repository import (
    FirmsRepository,
    PracticeAreasRepository,
    ProfilesRepository,
)
from intake_core.repositories.leads_repository import LeadsRepository
from intake_core.repositories.matches_repository import MatchesRepository
from intake_core.repositories.notifications_repository import NotificationsRepository
from intake_core.repositories.subscriptions_repository import SubscriptionsRepository

__all__ = [
    "BaseRepository",
    "ConversationsRepository",
    "FirmsRepository",
    "LeadsRepository",
    "MatchesRepository",
    "NotificationsRepository",
    "PracticeAreasRepository",
    "ProfilesRepository",
    "SubscriptionsRepository",
]
