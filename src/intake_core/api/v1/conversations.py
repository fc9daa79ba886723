"""Public intake conversation endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Body

from intake_core.database.session import get_session_context
from intake_core.dependencies import rate_limit
from intake_core.models.conversations import (
    CreateConversationResponse,
    EndConversationRequest,
    EndConversationResponse,
)
from intake_core.services.conversation_service import get_conversation_service
from intake_core.services.rate_limit_service import PUBLIC, STRICT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post(
    "",
    response_model=CreateConversationResponse,
    summary="Start an intake conversation",
    dependencies=[rate_limit(PUBLIC)],
)
async def create_conversation() -> CreateConversationResponse:
    async with get_session_context() as session:
        return await get_conversation_service(session).create_conversation()


@router.post(
    "/{conversation_id}/end",
    response_model=EndConversationResponse,
    summary="End an intake conversation",
    description="Ends the session at the vendor and stores the contact details the client entered.",
    dependencies=[rate_limit(STRICT)],
)
async def end_conversation(
    conversation_id: str,
    request: Optional[EndConversationRequest] = Body(default=None),
) -> EndConversationResponse:
    async with get_session_context() as session:
        return await get_conversation_service(session).end_conversation(conversation_id, request)
