"""Tests for transcript retrieval from Tavus."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from intake_core.clients.tavus_client import TavusClient
from intake_core.services.transcript_service import TranscriptService, find_transcript


def _client(configured: bool = True, **kwargs) -> MagicMock:
    client = MagicMock(spec=TavusClient)
    client.is_configured = configured
    client.get_conversation = AsyncMock(**kwargs)
    return client


class TestFindTranscript:
    @pytest.mark.parametrize(
        "body",
        [
            {"transcript": "Client: I was hurt at work."},
            {"conversation": {"transcript": "Client: I was hurt at work."}},
            {"data": {"transcript": "Client: I was hurt at work."}},
        ],
    )
    def test_known_locations(self, body):
        assert find_transcript(body) == "Client: I was hurt at work."

    def test_top_level_wins(self):
        body = {"transcript": "top", "data": {"transcript": "nested"}}
        assert find_transcript(body) == "top"

    def test_empty_value_falls_through(self):
        body = {"transcript": "   ", "conversation": {"transcript": "nested"}}
        assert find_transcript(body) == "nested"

    def test_turn_list_is_joined(self):
        body = {
            "transcript": [
                {"role": "assistant", "content": "How can I help?"},
                {"role": "user", "content": "I was in a car accident."},
                {"role": "system"},
            ]
        }
        assert find_transcript(body) == "assistant: How can I help?\nuser: I was in a car accident."

    def test_missing_or_non_dict(self):
        assert find_transcript({"status": "ended"}) is None
        assert find_transcript(["not", "a", "dict"]) is None


class TestTranscriptService:
    @pytest.mark.asyncio
    async def test_fetch_returns_transcript(self):
        client = _client(return_value={"conversation": {"transcript": "hello"}})
        assert await TranscriptService(client).fetch("abc123") == "hello"
        client.get_conversation.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_not_ready_is_none(self):
        client = _client(return_value={"status": "ended"})
        assert await TranscriptService(client).fetch("abc123") is None

    @pytest.mark.asyncio
    async def test_unconfigured_client_is_none(self):
        client = _client(configured=False)
        assert await TranscriptService(client).fetch("abc123") is None
        client.get_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_is_none(self):
        request = httpx.Request("GET", "https://tavusapi.com/v2/conversations/abc123")
        response = httpx.Response(404, request=request, text="not found")
        client = _client(side_effect=httpx.HTTPStatusError("404", request=request, response=response))
        assert await TranscriptService(client).fetch("abc123") is None

    @pytest.mark.asyncio
    async def test_network_error_is_none(self):
        client = _client(side_effect=httpx.ConnectError("refused"))
        assert await TranscriptService(client).fetch("abc123") is None


class TestTavusClient:
    @pytest.mark.asyncio
    async def test_get_conversation_sends_api_key(self, monkeypatch):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-api-key")
            return httpx.Response(200, json={"transcript": "hi"})

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            "intake_core.clients.tavus_client.httpx.AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )

        client = TavusClient(api_key="tv-key", base_url="https://tavus.test/")
        body = await client.get_conversation("abc123")

        assert body == {"transcript": "hi"}
        assert seen == {"url": "https://tavus.test/v2/conversations/abc123", "key": "tv-key"}
