"""Stripe webhook handling: firm subscription tier, status and quota."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.config import get_settings
from intake_core.database.models import utc_now
from intake_core.exceptions import ValidationError
from intake_core.repositories.firms_repository import FirmsRepository
from intake_core.repositories.subscriptions_repository import SubscriptionsRepository
from intake_core.services.notifications_service import NotificationsService

logger = logging.getLogger(__name__)

TIER_CONFIG: Dict[str, Dict[str, int]] = {
    "basic": {"limit": 10, "price": 99},
    "pro": {"limit": 50, "price": 299},
    "enterprise": {"limit": 999, "price": 999},
}
DEFAULT_TIER = "basic"


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def _customer_id(obj: Dict[str, Any]) -> Optional[str]:
    customer = obj.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer


def verify_webhook_signature(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify a Stripe webhook and return the event as a plain dict.

    Raises:
        ValidationError: If the signature header or secret is missing, or the
            signature does not match
    """
    secret = get_settings().stripe.webhook_secret
    if not signature:
        raise ValidationError("Missing stripe-signature header")
    if not secret:
        logger.warning("Stripe webhook secret not configured. Cannot verify signature.")
        raise ValidationError("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Stripe webhook signature verification failed: {e}")
        raise ValidationError("Invalid signature") from e
    except ValueError as e:
        raise ValidationError("Invalid payload") from e

    return json.loads(payload)


class BillingService:
    """Applies Stripe subscription and invoice events to law firms."""

    def __init__(self, session: AsyncSession, notifier: Optional[NotificationsService] = None):
        self.session = session
        self._firms = FirmsRepository(session)
        self._subscriptions = SubscriptionsRepository(session)
        self._notifier = notifier or NotificationsService(session)

    async def handle_event(self, event: Dict[str, Any]) -> bool:
        """
        Dispatch a verified Stripe event.

        Returns:
            True if the event type was handled, False if it was only acknowledged.
        """
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        handlers = {
            "customer.subscription.created": self.handle_subscription_update,
            "customer.subscription.updated": self.handle_subscription_update,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "invoice.payment_succeeded": self.handle_payment_succeeded,
            "invoice.payment_failed": self.handle_payment_failed,
            "checkout.session.completed": self.handle_checkout_completed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return False

        logger.info(f"Processing Stripe event {event.get('id')} ({event_type})")
        await handler(obj)
        return True

    async def handle_subscription_update(self, subscription: Dict[str, Any]) -> None:
        customer_id = _customer_id(subscription)
        firm = await self._firms.get_by_stripe_customer_id(customer_id) if customer_id else None
        if firm is None:
            logger.error(f"Law firm not found for Stripe customer {customer_id}")
            return

        tier = (subscription.get("metadata") or {}).get("tier") or DEFAULT_TIER
        if tier not in TIER_CONFIG:
            logger.warning(f"Unknown subscription tier {tier!r}; using {DEFAULT_TIER}")
            tier = DEFAULT_TIER
        config = TIER_CONFIG[tier]

        await self._subscriptions.upsert(
            subscription["id"],
            law_firm_id=firm.id,
            stripe_customer_id=customer_id,
            plan_name=f"{tier.capitalize()} Plan",
            plan_tier=tier,
            status=subscription.get("status"),
            current_period_start=_timestamp(subscription.get("current_period_start")),
            current_period_end=_timestamp(subscription.get("current_period_end")),
            cancel_at=_timestamp(subscription.get("cancel_at")),
            cancelled_at=_timestamp(subscription.get("canceled_at")),
            trial_start=_timestamp(subscription.get("trial_start")),
            trial_end=_timestamp(subscription.get("trial_end")),
            amount=config["price"],
        )

        firm.subscription_tier = tier
        firm.subscription_status = subscription.get("status") or firm.subscription_status
        firm.monthly_lead_limit = config["limit"]
        firm.stripe_subscription_id = subscription["id"]
        firm.subscription_started_at = _timestamp(subscription.get("created")) or firm.subscription_started_at
        firm.trial_ends_at = _timestamp(subscription.get("trial_end"))
        await self.session.flush()
        logger.info(f"Updated subscription for {firm.name} to {tier} tier")

    async def handle_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        existing = await self._subscriptions.get_by_stripe_id(subscription["id"])
        if existing is not None:
            existing.status = "cancelled"
            existing.cancelled_at = utc_now()

        customer_id = _customer_id(subscription)
        firm = await self._firms.get_by_stripe_customer_id(customer_id) if customer_id else None
        if firm is not None:
            firm.subscription_tier = "free"
            firm.subscription_status = "cancelled"
            firm.monthly_lead_limit = get_settings().matching.free_tier_lead_limit
        await self.session.flush()
        logger.info(f"Subscription {subscription['id']} cancelled; firm moved to free tier")

    async def handle_payment_succeeded(self, invoice: Dict[str, Any]) -> None:
        customer_id = _customer_id(invoice)
        firm = await self._firms.get_by_stripe_customer_id(customer_id) if customer_id else None
        if firm is None:
            return

        amount = (invoice.get("amount_paid") or 0) / 100
        await self._notifier.notify_firm_admins(
            firm.id,
            "payment_due",
            "Payment Successful",
            f"Your payment of ${amount:.2f} has been processed successfully.",
            "/admin/billing",
        )

    async def handle_payment_failed(self, invoice: Dict[str, Any]) -> None:
        customer_id = _customer_id(invoice)
        firm = await self._firms.get_by_stripe_customer_id(customer_id) if customer_id else None
        if firm is None:
            return

        firm.subscription_status = "past_due"
        await self.session.flush()
        await self._notifier.notify_firm_admins(
            firm.id,
            "payment_due",
            "Payment Failed",
            "Your recent payment failed. Please update your payment method to continue your subscription.",
            "/admin/billing",
        )

    async def handle_checkout_completed(self, checkout: Dict[str, Any]) -> None:
        # Tier changes arrive with customer.subscription.created
        firm_id = (checkout.get("metadata") or {}).get("law_firm_id")
        if not firm_id:
            return
        await self._notifier.notify_firm_admins(
            firm_id,
            "subscription_expiring",
            "Welcome to Premium!",
            "Your subscription has been activated. You now have access to premium features!",
            "/admin/firm-dashboard",
        )


def get_billing_service(session: AsyncSession) -> BillingService:
    """Factory for BillingService."""
    return BillingService(session)
