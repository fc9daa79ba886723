"""Tests for Stripe webhook verification and subscription handling."""

import hashlib
import hmac
import json
import time

import pytest
from sqlalchemy import select

from intake_core.database.models import LawFirm, Notification, Subscription
from intake_core.exceptions import ValidationError
from intake_core.services.billing_service import BillingService, verify_webhook_signature

WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a stripe-signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "object": "event", "type": event_type, "data": {"object": obj}}


class TestVerifyWebhookSignature:
    def test_valid_signature_returns_event(self):
        payload = json.dumps(event("invoice.payment_failed", {"customer": "cus_1"})).encode()
        parsed = verify_webhook_signature(payload, sign(payload))
        assert parsed["type"] == "invoice.payment_failed"
        assert parsed["data"]["object"]["customer"] == "cus_1"

    def test_missing_header(self):
        with pytest.raises(ValidationError, match="Missing stripe-signature header"):
            verify_webhook_signature(b"{}", None)

    def test_wrong_secret(self):
        payload = json.dumps(event("ping", {})).encode()
        with pytest.raises(ValidationError, match="Invalid signature"):
            verify_webhook_signature(payload, sign(payload, secret="whsec_other"))

    def test_tampered_payload(self):
        payload = json.dumps(event("ping", {})).encode()
        header = sign(payload)
        with pytest.raises(ValidationError):
            verify_webhook_signature(payload + b" ", header)


class TestBillingService:
    @pytest.fixture
    async def firm(self, factory):
        firm = await factory.firm(
            subscription_tier="free",
            subscription_status="inactive",
            monthly_lead_limit=3,
            stripe_customer_id="cus_123",
        )
        await factory.profile(firm)
        return firm

    async def _reload(self, session, firm):
        return await session.get(LawFirm, firm.id, populate_existing=True)

    @pytest.mark.asyncio
    async def test_subscription_created_sets_tier_and_quota(self, session, firm):
        handled = await BillingService(session).handle_event(
            event(
                "customer.subscription.created",
                {
                    "id": "sub_1",
                    "customer": "cus_123",
                    "status": "active",
                    "metadata": {"tier": "pro"},
                    "current_period_start": 1_790_000_000,
                    "current_period_end": 1_792_592_000,
                    "created": 1_790_000_000,
                },
            )
        )
        await session.commit()

        assert handled is True
        stored = await self._reload(session, firm)
        assert stored.subscription_tier == "pro"
        assert stored.subscription_status == "active"
        assert stored.monthly_lead_limit == 50
        assert stored.stripe_subscription_id == "sub_1"

        subscription = (await session.execute(select(Subscription))).scalar_one()
        assert subscription.plan_name == "Pro Plan"
        assert subscription.amount == 299
        assert subscription.current_period_end is not None

    @pytest.mark.asyncio
    async def test_subscription_update_is_upserted(self, session, firm):
        service = BillingService(session)
        base = {"id": "sub_1", "customer": "cus_123", "status": "active", "metadata": {"tier": "basic"}}
        await service.handle_event(event("customer.subscription.created", base))
        await service.handle_event(
            event("customer.subscription.updated", {**base, "metadata": {"tier": "enterprise"}})
        )

        rows = (await session.execute(select(Subscription))).scalars().all()
        assert len(rows) == 1
        assert rows[0].plan_tier == "enterprise"
        assert (await self._reload(session, firm)).monthly_lead_limit == 999

    @pytest.mark.asyncio
    async def test_unknown_tier_falls_back_to_basic(self, session, firm):
        await BillingService(session).handle_event(
            event(
                "customer.subscription.updated",
                {"id": "sub_1", "customer": "cus_123", "status": "trialing", "metadata": {"tier": "gold"}},
            )
        )
        stored = await self._reload(session, firm)
        assert stored.subscription_tier == "basic"
        assert stored.monthly_lead_limit == 10
        assert stored.subscription_status == "trialing"

    @pytest.mark.asyncio
    async def test_subscription_deleted_moves_firm_to_free(self, session, firm):
        service = BillingService(session)
        sub = {"id": "sub_1", "customer": "cus_123", "status": "active", "metadata": {"tier": "pro"}}
        await service.handle_event(event("customer.subscription.created", sub))
        await service.handle_event(event("customer.subscription.deleted", sub))

        stored = await self._reload(session, firm)
        assert stored.subscription_tier == "free"
        assert stored.subscription_status == "cancelled"
        assert stored.monthly_lead_limit == 3
        subscription = (await session.execute(select(Subscription))).scalar_one()
        assert subscription.status == "cancelled"
        assert subscription.cancelled_at is not None

    @pytest.mark.asyncio
    async def test_payment_failed_marks_past_due_and_notifies(self, session, firm):
        await BillingService(session).handle_event(event("invoice.payment_failed", {"customer": "cus_123"}))

        assert (await self._reload(session, firm)).subscription_status == "past_due"
        notification = (await session.execute(select(Notification))).scalar_one()
        assert notification.title == "Payment Failed"
        assert notification.law_firm_id == firm.id

    @pytest.mark.asyncio
    async def test_payment_succeeded_notifies_amount(self, session, firm):
        await BillingService(session).handle_event(
            event("invoice.payment_succeeded", {"customer": {"id": "cus_123"}, "amount_paid": 29900})
        )
        notification = (await session.execute(select(Notification))).scalar_one()
        assert "$299.00" in notification.message

    @pytest.mark.asyncio
    async def test_checkout_completed_welcomes_firm(self, session, firm):
        await BillingService(session).handle_event(
            event("checkout.session.completed", {"metadata": {"law_firm_id": firm.id}})
        )
        notification = (await session.execute(select(Notification))).scalar_one()
        assert notification.title == "Welcome to Premium!"

    @pytest.mark.asyncio
    async def test_unknown_customer_is_ignored(self, session, firm):
        handled = await BillingService(session).handle_event(
            event("customer.subscription.updated", {"id": "sub_9", "customer": "cus_unknown", "status": "active"})
        )
        assert handled is True
        assert (await session.execute(select(Subscription))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_unhandled_event_type(self, session):
        assert await BillingService(session).handle_event(event("charge.refunded", {})) is False
