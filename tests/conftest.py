"""Pytest configuration and fixtures."""

import os

# Settings are read once at import time; pin test values before importing the app.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("AUTH_JWT_AUDIENCE", "authenticated")
os.environ.setdefault("TAVUS_TRANSCRIPT_GRACE_SECONDS", "0")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("INTERNAL_API_KEY_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from intake_core.config import get_settings
from intake_core.database.models import (
    Base,
    Conversation,
    LawFirm,
    LawFirmPracticeArea,
    Lead,
    Match,
    PracticeArea,
    Profile,
)
from intake_core.database.session import set_session_factory
from intake_core.main import app
from intake_core.services import rate_limit_service


# Test database URL (in-memory SQLite for unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    """Session factory also used by the application code under test."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    set_session_factory(factory)
    yield factory
    set_session_factory(None)


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def fresh_rate_limiter(monkeypatch):
    """Every test starts with empty rate limit counters."""
    monkeypatch.setattr(rate_limit_service, "_rate_limit_service", None)


@pytest.fixture
async def client(session_factory):
    """Async HTTP client bound to the app (lifespan not run)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_token(user_id: str, role: str = "legal_admin", expires_in: int = 3600, **claims) -> str:
    """Sign an access token the way the auth provider does."""
    auth = get_settings().auth
    payload = {
        "sub": user_id,
        "role": role,
        "aud": auth.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, auth.jwt_secret, algorithm=auth.jwt_algorithm)


@pytest.fixture
def token():
    return make_token


@pytest.fixture
def auth_headers():
    """Bearer headers for a profile: auth_headers(profile, expires_in=-10)."""

    def _headers(profile, **kwargs) -> dict:
        return {"Authorization": f"Bearer {make_token(profile.id, role=profile.role, **kwargs)}"}

    return _headers


class Factory:
    """Creates committed rows for tests."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, instance):
        self.session.add(instance)
        await self.session.commit()
        return instance

    async def practice_area(self, name: str = "Personal Injury") -> PracticeArea:
        return await self._save(PracticeArea(name=name))

    async def firm(self, practice_area: Optional[PracticeArea] = None, experience_years: int = 5, **fields) -> LawFirm:
        defaults = dict(
            name="Smith & Partners",
            location="Austin, TX",
            subscription_tier="pro",
            subscription_status="active",
            monthly_lead_limit=50,
            leads_used_this_month=0,
            rating=4.5,
            success_rate=0.8,
            avg_response_time_minutes=60,
            total_leads_converted=25,
        )
        defaults.update(fields)
        firm = await self._save(LawFirm(**defaults))
        if practice_area is not None:
            await self._save(
                LawFirmPracticeArea(
                    law_firm_id=firm.id,
                    practice_area_id=practice_area.id,
                    experience_years=experience_years,
                )
            )
        return firm

    async def profile(self, firm: Optional[LawFirm] = None, role: str = "legal_admin", **fields) -> Profile:
        defaults = dict(email=f"admin-{os.urandom(4).hex()}@firm.test", first_name="Ada", last_name="Admin")
        defaults.update(fields)
        return await self._save(Profile(role=role, law_firm_id=firm.id if firm else None, **defaults))

    async def conversation(self, tavus_id: Optional[str] = None, **fields) -> Conversation:
        return await self._save(
            Conversation(tavus_conversation_id=tavus_id or f"tv-{os.urandom(4).hex()}", **fields)
        )

    async def lead(
        self,
        conversation: Optional[Conversation] = None,
        practice_area: Optional[PracticeArea] = None,
        status: str = "matched",
        **fields,
    ) -> Lead:
        if conversation is None:
            conversation = await self.conversation(status="matched", firm_location="Austin, TX")
        return await self._save(
            Lead(
                conversation_id=conversation.id,
                practice_area_id=practice_area.id if practice_area else None,
                status=status,
                quality_score=fields.pop("quality_score", 70),
                **fields,
            )
        )

    async def match(self, lead: Lead, firm: LawFirm, score: float = 0.75, status: str = "pending", **fields) -> Match:
        return await self._save(
            Match(lead_id=lead.id, law_firm_id=firm.id, match_score=score, status=status, **fields)
        )


@pytest.fixture
def factory(session):
    return Factory(session)
