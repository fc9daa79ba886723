"""Intake conversation lifecycle: start and end sessions at the video vendor."""

import logging
import re
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.clients.tavus_client import TavusClient, get_tavus_client
from intake_core.config import TavusSettings, get_settings
from intake_core.exceptions import ExternalServiceError, NotFoundError
from intake_core.models.conversations import (
    CreateConversationResponse,
    EndConversationRequest,
    EndConversationResponse,
)
from intake_core.repositories.conversations_repository import ConversationsRepository

logger = logging.getLogger(__name__)

ROOM_HOST = "tavus.daily.co"
_ROOM_ID = re.compile(r"^[A-Za-z0-9-]+$")


def normalize_conversation_url(url: str) -> str:
    """Rewrite legacy room hosts and bare room ids into a joinable URL."""
    if ROOM_HOST in url:
        return url
    if "c.daily.co" in url:
        return url.replace("c.daily.co", ROOM_HOST)
    if _ROOM_ID.match(url):
        return f"https://{ROOM_HOST}/{url}"
    logger.warning(f"Unrecognized conversation URL format: {url}")
    return url


class ConversationService:
    """Starts and ends intake sessions and keeps the conversation record in step."""

    def __init__(
        self,
        session: AsyncSession,
        client: Optional[TavusClient] = None,
        config: Optional[TavusSettings] = None,
    ):
        self.session = session
        self.client = client or get_tavus_client()
        self.config = config or get_settings().tavus
        self._conversations = ConversationsRepository(session)

    def _create_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"persona_id": self.config.persona_id}
        if self.config.custom_greeting:
            payload["custom_greeting"] = self.config.custom_greeting
        if self.config.conversational_context:
            payload["conversational_context"] = self.config.conversational_context
        if self.config.callback_url:
            payload["callback_url"] = self.config.callback_url
        return payload

    async def create_conversation(self) -> CreateConversationResponse:
        """
        Start a new intake session and record it with status `new`.

        Raises:
            ExternalServiceError: If the vendor is not configured, rejects the
                request, or answers without a conversation URL
        """
        if not self.client.is_configured or not self.config.persona_id:
            raise ExternalServiceError("tavus", "Conversation service is not configured")

        try:
            data = await self.client.create_conversation(self._create_payload())
        except httpx.HTTPStatusError as e:
            logger.error(f"Tavus create conversation failed: {e.response.status_code} {e.response.text}")
            raise ExternalServiceError("tavus", "Failed to create conversation") from e
        except httpx.RequestError as e:
            logger.error(f"Tavus create conversation request failed: {e}")
            raise ExternalServiceError("tavus", "Failed to create conversation") from e

        vendor_id = data.get("conversation_id")
        url = data.get("conversation_url")
        if not vendor_id or not url:
            logger.error(f"Tavus response missing conversation_id/conversation_url: keys={list(data)}")
            raise ExternalServiceError("tavus", "Tavus did not return a conversation URL")

        conversation = await self._conversations.create(tavus_conversation_id=vendor_id, status="new")
        logger.info(f"Created conversation {conversation.id} (tavus={vendor_id})")
        return CreateConversationResponse(
            conversation_id=vendor_id,
            conversation_url=normalize_conversation_url(url),
            status=data.get("status"),
        )

    async def end_conversation(
        self, vendor_id: str, request: Optional[EndConversationRequest] = None
    ) -> EndConversationResponse:
        """
        End a session at the vendor and store what the client entered.

        Raises:
            NotFoundError: If no conversation has this vendor id
            ExternalServiceError: If the vendor rejects the request
        """
        conversation = await self._conversations.get_by_tavus_id(vendor_id)
        if conversation is None:
            raise NotFoundError("Conversation", vendor_id)

        if not self.client.is_configured:
            raise ExternalServiceError("tavus", "Conversation service is not configured")
        try:
            await self.client.end_conversation(vendor_id)
        except httpx.HTTPStatusError as e:
            logger.error(f"Tavus end conversation failed: {e.response.status_code} {e.response.text}")
            raise ExternalServiceError("tavus", "Failed to end conversation") from e
        except httpx.RequestError as e:
            logger.error(f"Tavus end conversation request failed: {e}")
            raise ExternalServiceError("tavus", "Failed to end conversation") from e

        if request is not None:
            for field, value in request.model_dump(exclude_none=True).items():
                setattr(conversation, field, value)
        conversation.status = "processed"
        await self.session.flush()

        logger.info(f"Conversation {conversation.id} ended")
        return EndConversationResponse(conversation_id=vendor_id, status=conversation.status)


def get_conversation_service(session: AsyncSession) -> ConversationService:
    """Factory for ConversationService."""
    return ConversationService(session=session)
