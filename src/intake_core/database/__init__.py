"""Database connection and session management."""

from intake_core.database.connection import (
    check_connection,
    close_engine,
    create_engine,
    get_engine,
)
from intake_core.database.models import (
    Base,
    Conversation,
    LawFirm,
    LawFirmPracticeArea,
    Lead,
    LeadActivity,
    Match,
    Notification,
    PracticeArea,
    Profile,
    Subscription,
)
from intake_core.database.session import (
    close_db,
    get_session,
    get_session_context,
    get_session_factory,
    init_db,
    set_session_factory,
)

__all__ = [
    "Base",
    "Conversation",
    "LawFirm",
    "LawFirmPracticeArea",
    "Lead",
    "LeadActivity",
    "Match",
    "Notification",
    "PracticeArea",
    "Profile",
    "Subscription",
    "check_connection",
    "close_db",
    "close_engine",
    "create_engine",
    "get_engine",
    "get_session",
    "get_session_context",
    "get_session_factory",
    "init_db",
    "set_session_factory",
]
