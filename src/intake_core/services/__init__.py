"""Services package."""

from intake_core.services.billing_service import BillingService, get_billing_service
from intake_core.services.claim_service import ClaimService, get_claim_service
from intake_core.services.conversation_service import ConversationService, get_conversation_service
from intake_core.services.extraction_service import (
    LeadExtractionService,
    LeadExtractor,
    get_lead_extraction_service,
)
from intake_core.services.matching_service import MatchAllocator, WeightedMatchScorer, get_match_allocator
from intake_core.services.notifications_service import NotificationsService, get_notifications_service
from intake_core.services.rate_limit_service import RateLimitService, get_rate_limit_service
from intake_core.services.transcript_service import TranscriptService, get_transcript_service
from intake_core.services.webhook_service import TavusWebhookService, get_tavus_webhook_service

__all__ = [
    "BillingService",
    "ClaimService",
    "ConversationService",
    "LeadExtractionService",
    "LeadExtractor",
    "MatchAllocator",
    "NotificationsService",
    "RateLimitService",
    "TavusWebhookService",
    "TranscriptService",
    "WeightedMatchScorer",
    "get_billing_service",
    "get_claim_service",
    "get_conversation_service",
    "get_lead_extraction_service",
    "get_match_allocator",
    "get_notifications_service",
    "get_rate_limit_service",
    "get_tavus_webhook_service",
    "get_transcript_service",
]
