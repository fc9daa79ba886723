"""Tests for Tavus webhook dispatch."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy import select

from intake_core.database.models import Conversation
from intake_core.services.transcript_service import TranscriptService
from intake_core.services.webhook_service import (
    TavusWebhookService,
    extract_conversation_id,
    extract_event_type,
)


def _transcripts(transcript=None) -> MagicMock:
    service = MagicMock(spec=TranscriptService)
    service.fetch = AsyncMock(return_value=transcript)
    return service


class TestConversationIdExtraction:
    @pytest.mark.parametrize("key", ["conversation_id", "conversationId", "id"])
    def test_top_level_keys(self, key):
        assert extract_conversation_id({key: "abc123"}) == "abc123"

    @pytest.mark.parametrize("container", ["data", "conversation", "payload", "object"])
    @pytest.mark.parametrize("key", ["conversation_id", "conversationId", "id"])
    def test_nested_keys(self, container, key):
        assert extract_conversation_id({container: {key: "abc123"}}) == "abc123"

    def test_first_match_wins(self):
        body = {"id": "top", "data": {"conversation_id": "nested"}}
        assert extract_conversation_id(body) == "top"

    def test_empty_and_non_string_values_are_skipped(self):
        body = {"conversation_id": "", "id": 42, "payload": {"conversationId": "from-payload"}}
        assert extract_conversation_id(body) == "from-payload"

    def test_id_is_returned_verbatim(self):
        assert extract_conversation_id({"conversation_id": "   ", "id": " c123 "}) == " c123 "

    def test_missing(self):
        assert extract_conversation_id({"data": "not-a-dict", "event_type": "ended"}) is None


class TestEventTypeExtraction:
    def test_probe_order(self):
        assert extract_event_type({"event_type": "a", "type": "b", "event": "c"}) == "a"
        assert extract_event_type({"type": "b", "event": "c"}) == "b"
        assert extract_event_type({"event": "c"}) == "c"

    def test_default_unknown(self):
        assert extract_event_type({}) == "unknown"


class TestTavusWebhookService:
    @pytest.mark.asyncio
    async def test_non_object_payload(self):
        outcome = await TavusWebhookService(_transcripts(), grace_seconds=0).handle(["x"])
        assert outcome.status_code == 400
        assert outcome.body == {"error": "Invalid JSON payload"}

    @pytest.mark.asyncio
    async def test_missing_conversation_id_lists_keys(self):
        transcripts = _transcripts("text")
        payload = {"event_type": "conversation.ended", "properties": {}}
        outcome = await TavusWebhookService(transcripts, grace_seconds=0).handle(payload)

        assert outcome.status_code == 400
        assert outcome.body["error"] == "Missing conversation_id in payload"
        assert outcome.body["received_keys"] == ["event_type", "properties"]
        assert outcome.body["payload"] == payload
        transcripts.fetch.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_type", ["ping", "system.replica_joined", "conversation.started"])
    async def test_unrecognized_event_is_acknowledged(self, event_type):
        transcripts = _transcripts("text")
        outcome = await TavusWebhookService(transcripts, grace_seconds=0).handle(
            {"event_type": event_type, "conversation_id": "abc123"}
        )

        assert outcome.status_code == 200
        assert outcome.body == {"message": "Webhook received", "event_type": event_type, "conversation_id": "abc123"}
        transcripts.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_grace_period_only_for_end_of_call(self):
        sleep = AsyncMock()
        service = TavusWebhookService(_transcripts(None), grace_seconds=2, sleep=sleep)

        await service.handle({"event_type": "conversation.ended", "conversation_id": "abc123"})
        sleep.assert_awaited_once_with(2)

        sleep.reset_mock()
        await service.handle({"event_type": "application.transcription_ready", "conversation_id": "abc123"})
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_transcript_not_ready(self):
        outcome = await TavusWebhookService(_transcripts(None), grace_seconds=0).handle(
            {"type": "completed", "data": {"id": "abc123"}}
        )
        assert outcome.status_code == 200
        assert outcome.body["message"] == "Webhook received but no transcript available yet"
        assert outcome.body["conversation_id"] == "abc123"

    @pytest.mark.asyncio
    async def test_unknown_conversation_row(self, session_factory):
        outcome = await TavusWebhookService(_transcripts("text"), grace_seconds=0).handle(
            {"event_type": "ended", "conversation_id": "missing"}
        )
        assert outcome.status_code == 500
        assert outcome.body == {"error": "Failed to update conversation in database"}

    @pytest.mark.asyncio
    async def test_transcript_fetch_crash_is_500(self):
        transcripts = MagicMock(spec=TranscriptService)
        transcripts.fetch = AsyncMock(side_effect=RuntimeError("boom"))
        outcome = await TavusWebhookService(transcripts, grace_seconds=0).handle(
            {"event_type": "ended", "conversation_id": "abc123"}
        )
        assert outcome.status_code == 500
        assert outcome.body == {"error": "Internal server error", "details": "boom"}

    @pytest.mark.asyncio
    async def test_stores_transcript_and_triggers_extraction(self, factory, session):
        conversation = await factory.conversation(tavus_id="abc123")
        transcript = "user: I slipped in a grocery store and broke my wrist."

        with patch(
            "intake_core.services.webhook_service.LeadExtractionService"
        ) as extraction_cls:
            extraction_cls.return_value.process = AsyncMock(return_value=None)
            outcome = await TavusWebhookService(_transcripts(transcript), grace_seconds=0).handle(
                {"event_type": "conversation.ended", "conversation_id": "abc123"}
            )

        assert outcome.status_code == 200
        assert outcome.body["message"] == "Transcript stored and lead extraction triggered"
        assert outcome.body["transcript_length"] == len(transcript)
        extraction_cls.return_value.process.assert_awaited_once_with(conversation.id, transcript)

        session.expire_all()
        stored = (await session.execute(select(Conversation).where(Conversation.id == conversation.id))).scalar_one()
        assert stored.transcript == transcript
        assert stored.transcript_received_at is not None

    @pytest.mark.asyncio
    async def test_extraction_failure_keeps_200(self, factory):
        await factory.conversation(tavus_id="abc123")

        with patch(
            "intake_core.services.webhook_service.LeadExtractionService"
        ) as extraction_cls:
            extraction_cls.return_value.process = AsyncMock(side_effect=RuntimeError("model down"))
            outcome = await TavusWebhookService(_transcripts("text"), grace_seconds=0).handle(
                {"event_type": "transcription_ready", "conversation_id": "abc123"}
            )

        assert outcome.status_code == 200
        assert outcome.body["message"] == "Transcript stored and lead extraction triggered"
