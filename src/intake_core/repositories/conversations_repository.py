"""Conversations repository for data access operations."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.database.models import Conversation, utc_now
from intake_core.exceptions import DatabaseError
from intake_core.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ConversationsRepository(BaseRepository[Conversation]):
    """Repository for intake conversation records."""

    def __init__(self, session: AsyncSession):
        super().__init__(Conversation, session)

    async def get_by_tavus_id(self, tavus_conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by the vendor's conversation id."""
        try:
            result = await self.session.execute(
                select(Conversation).where(Conversation.tavus_conversation_id == tavus_conversation_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting conversation by tavus id {tavus_conversation_id}: {e}")
            raise DatabaseError("Failed to retrieve conversation") from e

    async def store_transcript(self, tavus_conversation_id: str, transcript: str) -> Optional[Conversation]:
        """
        Write the transcript onto the conversation with the given vendor id.

        Returns:
            The updated conversation, or None when no row matches.
        """
        conversation = await self.get_by_tavus_id(tavus_conversation_id)
        if conversation is None:
            return None

        try:
            conversation.transcript = transcript
            conversation.transcript_received_at = utc_now()
            await self.session.flush()
            return conversation
        except SQLAlchemyError as e:
            logger.error(f"Error storing transcript for {tavus_conversation_id}: {e}")
            raise DatabaseError("Failed to update conversation") from e
