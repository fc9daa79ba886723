"""API v1 router aggregation.

All v1 endpoints are prefixed with `/api/v1`.

Routers included:
- Webhooks (`/api/v1/webhooks/tavus`, `/api/v1/webhooks/stripe`)
- Conversations (`/api/v1/conversations/*`), public and rate limited
- Leads (`/api/v1/leads/extract` internal, `/api/v1/leads/{id}/claim`)
- Notifications (`/api/v1/notifications/*`)
- Jobs (`/api/v1/jobs/*`), internal maintenance

Authentication:
- Bearer tokens from the managed auth provider for firm users
- X-Internal-API-Key for extraction triggers and jobs
- Webhooks authenticate by signature (Stripe) or not at all (Tavus)
"""

from fastapi import APIRouter

from intake_core.api.v1 import conversations, jobs, leads, notifications, webhooks

router = APIRouter(
    prefix="/api/v1",
    responses={
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(webhooks.router)
router.include_router(conversations.router)
router.include_router(leads.router)
router.include_router(notifications.router)
router.include_router(jobs.router)


@router.get("", tags=["v1"])
async def api_info():
    """API v1 information."""
    return {
        "version": "v1",
        "endpoints": ["webhooks", "conversations", "leads", "notifications", "jobs"],
    }
