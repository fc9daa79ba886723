"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Timezone-aware current time used for every timestamp column."""
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Profile(Base):
    """User profile mirrored from the managed auth provider.

    Identity is owned by the auth provider; this service only reads the role
    and firm membership to find firm administrators.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # public | legal_admin | system_admin
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="public", index=True)
    law_firm_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"


class LawFirm(Base):
    """Law firm receiving leads, with its subscription and usage counters."""

    __tablename__ = "law_firms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, default=10, nullable=False)

    # Performance inputs for matching
    success_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_response_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_leads_converted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Subscription (owned by the payment webhook)
    # free | basic | pro | enterprise
    subscription_tier: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    # inactive | active | past_due | cancelled | trialing
    subscription_status: Mapped[str] = mapped_column(
        String(20), default="inactive", nullable=False, index=True
    )
    monthly_lead_limit: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    leads_used_this_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subscription_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<LawFirm(id={self.id}, name={self.name}, tier={self.subscription_tier})>"


class PracticeArea(Base):
    """Legal practice area (the extraction taxonomy)."""

    __tablename__ = "practice_areas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)


class LawFirmPracticeArea(Base):
    """Practice areas a firm accepts, with the firm's experience in each."""

    __tablename__ = "law_firm_practice_areas"
    __table_args__ = (UniqueConstraint("law_firm_id", "practice_area_id", name="uq_firm_practice_area"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    law_firm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    practice_area_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("practice_areas.id", ondelete="CASCADE"), nullable=False, index=True
    )
    experience_years: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Conversation(Base):
    """One AI video intake session."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    tavus_conversation_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )

    # Contact details and case data (filled by the extraction pipeline)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    case_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Client-supplied urgency (1-10); the model's estimate is kept separately
    urgency_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    openai_urgency_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    case_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    firm_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcript_received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # new | processed | matched
    status: Mapped[str] = mapped_column(String(20), default="new", nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, tavus_id={self.tavus_conversation_id}, status={self.status})>"


class Lead(Base):
    """Actionable case derived from a conversation.

    claimed_at, claimed_by_firm_id and claimed_by_user_id are always written
    together by a single conditional UPDATE.
    """

    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    practice_area_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("practice_areas.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # new | matched | unmatched | claimed | expired | contacted | converted | closed
    status: Mapped[str] = mapped_column(String(20), default="new", nullable=False, index=True)

    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # hot | warm | cold
    temperature: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    lead_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_by_firm_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="SET NULL"), nullable=True, index=True
    )
    claimed_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    conversation: Mapped["Conversation"] = relationship("Conversation", lazy="raise")
    practice_area: Mapped[Optional["PracticeArea"]] = relationship("PracticeArea", lazy="raise")

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, status={self.status})>"


class Match(Base):
    """Scored candidate pairing between a lead and a firm."""

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    lead_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    law_firm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    match_score: Mapped[float] = mapped_column(Float, nullable=False)
    # pending | accepted | rejected | expired
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    # Score breakdown written by the scorer
    match_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    lead: Mapped["Lead"] = relationship("Lead", lazy="raise")
    law_firm: Mapped["LawFirm"] = relationship("LawFirm", lazy="raise")

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, lead={self.lead_id}, firm={self.law_firm_id}, status={self.status})>"


class Notification(Base):
    """In-app notification for a user or a whole firm."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True, index=True
    )
    law_firm_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="CASCADE"), nullable=True, index=True
    )
    match_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # lead_matched | lead_claimed | payment_due | subscription_expiring | lead_expired | ...
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notification_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, firm={self.law_firm_id}, user={self.user_id})>"


class Subscription(Base):
    """Stripe subscription of a law firm."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid, index=True)
    law_firm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("law_firms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    plan_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    current_period_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_subscription_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class LeadActivity(Base):
    """Audit trail of lead lifecycle events."""

    __tablename__ = "lead_activities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    lead_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    # created | matched | claimed | expired | status_changed
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
