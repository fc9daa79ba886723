"""Tests for starting and ending intake conversations."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import select

from intake_core.clients.tavus_client import TavusClient
from intake_core.config import TavusSettings
from intake_core.database.models import Conversation
from intake_core.exceptions import ExternalServiceError, NotFoundError
from intake_core.models.conversations import EndConversationRequest
from intake_core.services.conversation_service import ConversationService, normalize_conversation_url


def _client(configured=True, **methods) -> MagicMock:
    client = MagicMock(spec=TavusClient)
    client.is_configured = configured
    client.create_conversation = AsyncMock(**methods.get("create", {}))
    client.end_conversation = AsyncMock(**methods.get("end", {}))
    return client


CONFIG = TavusSettings(
    api_key="tv-key",
    persona_id="p-legal",
    custom_greeting="Hi, tell me about your legal issue.",
    callback_url="https://intake.example.com/api/v1/webhooks/tavus",
)


class TestNormalizeConversationUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://tavus.daily.co/c123", "https://tavus.daily.co/c123"),
            ("https://c.daily.co/c123", "https://tavus.daily.co/c123"),
            ("c123-abc", "https://tavus.daily.co/c123-abc"),
            ("https://meet.example.com/room", "https://meet.example.com/room"),
        ],
    )
    def test_rewrites(self, url, expected):
        assert normalize_conversation_url(url) == expected


class TestCreateConversation:
    @pytest.mark.asyncio
    async def test_records_new_conversation(self, session):
        client = _client(
            create={
                "return_value": {
                    "conversation_id": "c123",
                    "conversation_url": "https://c.daily.co/c123",
                    "status": "active",
                }
            }
        )

        response = await ConversationService(session, client=client, config=CONFIG).create_conversation()

        assert response.conversation_id == "c123"
        assert response.conversation_url == "https://tavus.daily.co/c123"
        payload = client.create_conversation.await_args.args[0]
        assert payload == {
            "persona_id": "p-legal",
            "custom_greeting": "Hi, tell me about your legal issue.",
            "callback_url": "https://intake.example.com/api/v1/webhooks/tavus",
        }
        stored = (await session.execute(select(Conversation))).scalar_one()
        assert stored.tavus_conversation_id == "c123"
        assert stored.status == "new"

    @pytest.mark.asyncio
    async def test_unconfigured_vendor(self, session):
        service = ConversationService(session, client=_client(configured=False), config=CONFIG)
        with pytest.raises(ExternalServiceError):
            await service.create_conversation()

    @pytest.mark.asyncio
    async def test_missing_url_in_response(self, session):
        client = _client(create={"return_value": {"conversation_id": "c123"}})
        with pytest.raises(ExternalServiceError, match="did not return a conversation URL"):
            await ConversationService(session, client=client, config=CONFIG).create_conversation()
        assert (await session.execute(select(Conversation))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_vendor_rejection(self, session):
        request = httpx.Request("POST", "https://tavusapi.com/v2/conversations")
        error = httpx.HTTPStatusError("400", request=request, response=httpx.Response(400, request=request))
        client = _client(create={"side_effect": error})
        with pytest.raises(ExternalServiceError):
            await ConversationService(session, client=client, config=CONFIG).create_conversation()


class TestEndConversation:
    @pytest.mark.asyncio
    async def test_stores_client_details(self, session, factory):
        conversation = await factory.conversation(tavus_id="c123")
        client = _client()
        request = EndConversationRequest(name="Sam Client", email="sam@example.com", urgency_score=9)

        response = await ConversationService(session, client=client, config=CONFIG).end_conversation(
            "c123", request
        )

        assert response.status == "processed"
        client.end_conversation.assert_awaited_once_with("c123")
        stored = await session.get(Conversation, conversation.id, populate_existing=True)
        assert stored.name == "Sam Client"
        assert stored.urgency_score == 9
        assert stored.phone is None

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, session):
        client = _client()
        with pytest.raises(NotFoundError):
            await ConversationService(session, client=client, config=CONFIG).end_conversation("nope")
        client.end_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_vendor_unreachable(self, session, factory):
        await factory.conversation(tavus_id="c123")
        client = _client(end={"side_effect": httpx.ConnectError("refused")})
        with pytest.raises(ExternalServiceError):
            await ConversationService(session, client=client, config=CONFIG).end_conversation("c123")
