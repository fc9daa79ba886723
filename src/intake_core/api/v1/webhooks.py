"""Inbound vendor webhooks (Tavus conversations, Stripe billing).

Both endpoints answer with the flat JSON bodies the vendors expect rather than
the API error envelope.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, Request, Response, status

from intake_core.database.session import get_session_context
from intake_core.exceptions import ValidationError
from intake_core.services.billing_service import get_billing_service, verify_webhook_signature
from intake_core.services.webhook_service import get_tavus_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/tavus",
    summary="Tavus conversation webhook",
    description=(
        "Receives conversation lifecycle events. End-of-call and transcription-ready events "
        "fetch the transcript, store it and trigger lead extraction; other events are acknowledged."
    ),
)
async def tavus_webhook(request: Request, response: Response) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Tavus webhook with invalid JSON body")
        response.status_code = status.HTTP_400_BAD_REQUEST
        return {"error": "Invalid JSON payload"}

    outcome = await get_tavus_webhook_service().handle(payload)
    response.status_code = outcome.status_code
    return outcome.body


@router.post(
    "/stripe",
    summary="Stripe billing webhook",
    description="Signed Stripe events updating firm subscriptions and creating billing notifications.",
)
async def stripe_webhook(
    request: Request,
    response: Response,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
) -> Dict[str, Any]:
    payload = await request.body()
    try:
        event = verify_webhook_signature(payload, stripe_signature)
    except ValidationError as e:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return {"error": e.message}

    try:
        async with get_session_context() as session:
            await get_billing_service(session).handle_event(event)
    except Exception as e:
        logger.error(f"Error processing Stripe event {event.get('type')}: {e}", exc_info=True)
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return {"error": str(e)}

    return {"received": True}
