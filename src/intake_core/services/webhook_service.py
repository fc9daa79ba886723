"""Tavus webhook dispatch.

The vendor's payload shape is not stable, so the conversation id and event type
are found by probing an ordered list of accessors; the first non-empty string
wins. Only end-of-conversation and transcription-ready events do any work;
everything else is acknowledged so the vendor never retries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

from intake_core.config import get_settings
from intake_core.database.session import get_session_context
from intake_core.exceptions import DatabaseError
from intake_core.repositories.conversations_repository import ConversationsRepository
from intake_core.services.extraction_service import LeadExtractionService
from intake_core.services.transcript_service import TranscriptService, get_transcript_service

logger = logging.getLogger(__name__)

Accessor = Callable[[Dict[str, Any]], Any]

_ID_KEYS = ("conversation_id", "conversationId", "id")
_ID_CONTAINERS = ("data", "conversation", "payload", "object")


def _nested(container: str, key: str) -> Accessor:
    def access(body: Dict[str, Any]) -> Any:
        child = body.get(container)
        return child.get(key) if isinstance(child, dict) else None

    return access


def _top(key: str) -> Accessor:
    return lambda body: body.get(key)


CONVERSATION_ID_LOCATIONS: Sequence[Accessor] = tuple(
    [_top(key) for key in _ID_KEYS]
    + [_nested(container, key) for container in _ID_CONTAINERS for key in _ID_KEYS]
)

EVENT_TYPE_LOCATIONS: Sequence[Accessor] = (_top("event_type"), _top("type"), _top("event"))

END_OF_CALL_EVENTS = frozenset(
    {"conversation.ended", "conversation_ended", "ended", "conversation.completed", "completed"}
)
TRANSCRIPTION_READY_EVENTS = frozenset({"application.transcription_ready", "transcription_ready"})
TERMINAL_EVENTS = END_OF_CALL_EVENTS | TRANSCRIPTION_READY_EVENTS


def _first_string(body: Dict[str, Any], locations: Sequence[Accessor]) -> Optional[str]:
    for locate in locations:
        value = locate(body)
        if isinstance(value, str) and value.strip():
            return value
    return None


def extract_conversation_id(body: Dict[str, Any]) -> Optional[str]:
    return _first_string(body, CONVERSATION_ID_LOCATIONS)


def extract_event_type(body: Dict[str, Any]) -> str:
    return _first_string(body, EVENT_TYPE_LOCATIONS) or "unknown"


@dataclass
class WebhookOutcome:
    """HTTP status and JSON body to answer the vendor with."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


class TavusWebhookService:
    """Runs the transcript -> extraction pipeline for one webhook delivery."""

    def __init__(
        self,
        transcripts: Optional[TranscriptService] = None,
        grace_seconds: Optional[float] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.transcripts = transcripts or get_transcript_service()
        self.grace_seconds = (
            grace_seconds if grace_seconds is not None else get_settings().tavus.transcript_grace_seconds
        )
        self._sleep = sleep

    async def handle(self, payload: Any) -> WebhookOutcome:
        if not isinstance(payload, dict):
            return WebhookOutcome(400, {"error": "Invalid JSON payload"})

        event_type = extract_event_type(payload)
        conversation_id = extract_conversation_id(payload)
        logger.info(f"Tavus webhook received: event_type={event_type}, conversation_id={conversation_id}")

        if conversation_id is None:
            logger.error(f"No conversation id in webhook payload; keys={list(payload.keys())}")
            return WebhookOutcome(
                400,
                {
                    "error": "Missing conversation_id in payload",
                    "received_keys": list(payload.keys()),
                    "payload": payload,
                },
            )

        context = {"event_type": event_type, "conversation_id": conversation_id}
        if event_type not in TERMINAL_EVENTS:
            return WebhookOutcome(200, {"message": "Webhook received", **context})

        try:
            return await self._process(conversation_id, event_type, context)
        except DatabaseError as e:
            logger.error(f"Database error handling webhook for {conversation_id}: {e}")
            return WebhookOutcome(500, {"error": "Failed to update conversation in database"})
        except Exception as e:
            logger.error(f"Error processing Tavus webhook for {conversation_id}: {e}", exc_info=True)
            return WebhookOutcome(500, {"error": "Internal server error", "details": str(e)})

    async def _process(self, conversation_id: str, event_type: str, context: Dict[str, Any]) -> WebhookOutcome:
        if event_type in END_OF_CALL_EVENTS and self.grace_seconds > 0:
            await self._sleep(self.grace_seconds)

        transcript = await self.transcripts.fetch(conversation_id)
        if transcript is None:
            return WebhookOutcome(200, {"message": "Webhook received but no transcript available yet", **context})

        async with get_session_context() as session:
            conversation = await ConversationsRepository(session).store_transcript(conversation_id, transcript)
            if conversation is None:
                logger.error(f"No conversation row for Tavus conversation {conversation_id}")
                return WebhookOutcome(500, {"error": "Failed to update conversation in database"})
            internal_id = conversation.id
        logger.info(f"Stored transcript ({len(transcript)} chars) for conversation {internal_id}")

        await self._trigger_extraction(internal_id, transcript)
        return WebhookOutcome(
            200,
            {
                "message": "Transcript stored and lead extraction triggered",
                "transcript_length": len(transcript),
                **context,
            },
        )

    async def _trigger_extraction(self, conversation_id: str, transcript: str) -> None:
        """Run the extraction pipeline; its failures never change the webhook response."""
        try:
            async with get_session_context() as session:
                await LeadExtractionService(session).process(conversation_id, transcript)
        except Exception as e:
            logger.error(f"Lead extraction for conversation {conversation_id} failed: {e}", exc_info=True)


def get_tavus_webhook_service() -> TavusWebhookService:
    """Factory for TavusWebhookService."""
    return TavusWebhookService()
