"""Lead extraction from conversation transcripts.

`LeadExtractor` asks the model for a JSON description of the case; the
`LeadExtractionService` pipeline stores the result on the conversation,
creates the lead and hands it to the match allocator.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from litellm import acompletion
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from intake_core.config import LLMSettings, get_settings
from intake_core.database.models import Conversation, Lead
from intake_core.exceptions import NotFoundError
from intake_core.models.leads import CASE_CATEGORIES, ExtractedLead
from intake_core.repositories.conversations_repository import ConversationsRepository
from intake_core.repositories.firms_repository import PracticeAreasRepository
from intake_core.repositories.leads_repository import LeadsRepository
from intake_core.services.lead_scoring import (
    assign_temperature,
    calculate_quality_score,
    effective_urgency,
    estimate_lead_value,
)
from intake_core.services.matching_service import MatchAllocator

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a legal data extraction expert. Extract information from conversation "
    "transcripts and return valid JSON only."
)


def build_extraction_prompt(transcript: str) -> str:
    categories = ", ".join(CASE_CATEGORIES)
    return f"""Analyze this legal conversation transcript and extract the following information:

1. Case Category (choose from: {categories})
2. Client Location (city, state format)
3. Urgency Score (1-10, where 10 is most urgent)
4. Client Details (name, email, phone if mentioned)
5. Case Description (summary of legal issue)

Transcript:
{transcript}

Return a JSON object with this structure:
{{
  "caseCategory": "string",
  "firmLocation": "string",
  "openaiUrgencyScore": number,
  "extractedData": {{
    "name": "string or null",
    "email": "string or null",
    "phone": "string or null",
    "case_description": "string"
  }}
}}"""


class LeadExtractor:
    """One model call per transcript; every failure is reported as None."""

    def __init__(self, config: Optional[LLMSettings] = None):
        self.config = config or get_settings().llm

    async def extract(self, transcript: str) -> Optional[ExtractedLead]:
        params = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_extraction_prompt(transcript)},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "timeout": self.config.timeout,
            "response_format": {"type": "json_object"},
        }
        if self.config.api_key:
            params["api_key"] = self.config.api_key

        try:
            response = await acompletion(**params)
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"Extraction model call failed: {e}", exc_info=True)
            return None

        if not content or not content.strip():
            logger.error("Extraction model returned no content")
            return None

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Extraction model returned invalid JSON: {e}; content={content[:500]!r}")
            return None

        try:
            extracted = ExtractedLead.model_validate(data)
        except (PydanticValidationError, TypeError, ValueError, OverflowError) as e:
            logger.error(f"Extraction result does not match the expected shape: {e}")
            return None

        logger.info(
            f"Extracted lead: category={extracted.case_category}, "
            f"location={extracted.firm_location}, urgency={extracted.urgency_score}"
        )
        return extracted


class LeadExtractionService:
    """Runs extraction for a conversation and turns the result into a lead."""

    def __init__(
        self,
        session: AsyncSession,
        extractor: Optional[LeadExtractor] = None,
        allocator: Optional[MatchAllocator] = None,
    ) -> None:
        self.session = session
        self.extractor = extractor or LeadExtractor()
        self.allocator = allocator or MatchAllocator(session)
        self._conversations = ConversationsRepository(session)
        self._leads = LeadsRepository(session)
        self._practice_areas = PracticeAreasRepository(session)

    async def _get_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self._conversations.get_by_id(conversation_id)
        if conversation is None:
            conversation = await self._conversations.get_by_tavus_id(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def process(self, conversation_id: str, transcript: str) -> Optional[ExtractedLead]:
        """
        Extract, store and distribute the lead for one conversation.

        Args:
            conversation_id: Internal or vendor conversation id
            transcript: Full transcript text

        Returns:
            The extracted lead data, or None when extraction failed. A failed
            extraction still marks the conversation processed and never
            reaches the allocator.

        Raises:
            NotFoundError: If the conversation does not exist
        """
        conversation = await self._get_conversation(conversation_id)
        logger.info(f"Processing lead extraction for conversation {conversation.id}")

        extracted = await self.extractor.extract(transcript)
        if extracted is None:
            conversation.status = "processed"
            await self.session.flush()
            logger.warning(f"Lead extraction failed for conversation {conversation.id}; marked processed")
            return None

        self._apply(conversation, extracted)
        await self.session.flush()

        lead = await self._create_or_refresh_lead(conversation)
        if lead.claimed_by_firm_id:
            logger.info(f"Lead {lead.id} is already claimed; not re-matching")
        elif lead.practice_area_id:
            await self.allocator.allocate(lead.id)
        else:
            logger.info(f"No practice area for category {conversation.case_category!r}; lead {lead.id} not matched")
        return extracted

    @staticmethod
    def _apply(conversation: Conversation, extracted: ExtractedLead) -> None:
        contact = extracted.extracted_data
        conversation.case_category = extracted.case_category
        conversation.firm_location = extracted.firm_location
        conversation.openai_urgency_score = extracted.urgency_score
        # Details the client typed in themselves win over the model's guesses
        conversation.name = conversation.name or contact.name
        conversation.email = conversation.email or contact.email
        conversation.phone = conversation.phone or contact.phone
        conversation.case_description = conversation.case_description or contact.case_description
        conversation.status = "processed"

    async def _create_or_refresh_lead(self, conversation: Conversation) -> Lead:
        practice_area = None
        if conversation.case_category:
            practice_area = await self._practice_areas.get_by_name(conversation.case_category)

        quality = calculate_quality_score(conversation)
        fields = {
            "practice_area_id": practice_area.id if practice_area else None,
            "quality_score": quality,
            "temperature": assign_temperature(quality),
            "lead_value": estimate_lead_value(
                practice_area.name if practice_area else None, effective_urgency(conversation), quality
            ),
        }

        lead = await self._leads.get_by_conversation_id(conversation.id)
        if lead is None:
            lead = await self._leads.create(conversation_id=conversation.id, status="new", **fields)
            await self._leads.add_activity(
                lead.id, "created", details={"quality_score": quality, "temperature": fields["temperature"]}
            )
            logger.info(f"Created lead {lead.id} (quality={quality}) for conversation {conversation.id}")
        else:
            lead = await self._leads.update(lead.id, **fields)
            logger.info(f"Refreshed lead {lead.id} (quality={quality}) for conversation {conversation.id}")
        return lead


def get_lead_extraction_service(session: AsyncSession) -> LeadExtractionService:
    """Factory for LeadExtractionService."""
    return LeadExtractionService(session=session)
