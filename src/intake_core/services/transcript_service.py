"""Transcript retrieval from the conversational video vendor."""

import logging
from typing import Any, Callable, Optional, Sequence

import httpx

from intake_core.clients.tavus_client import TavusClient, get_tavus_client

logger = logging.getLogger(__name__)


def _child(body: dict, key: str) -> dict:
    value = body.get(key)
    return value if isinstance(value, dict) else {}


# Vendor responses have carried the transcript in several places.
TRANSCRIPT_LOCATIONS: Sequence[Callable[[dict], Any]] = (
    lambda body: body.get("transcript"),
    lambda body: _child(body, "conversation").get("transcript"),
    lambda body: _child(body, "data").get("transcript"),
)


def _as_text(transcript: Any) -> Optional[str]:
    """Normalize a transcript value to text; lists of turns become `role: content` lines."""
    if isinstance(transcript, str):
        return transcript if transcript.strip() else None
    if isinstance(transcript, list):
        lines = []
        for turn in transcript:
            if isinstance(turn, dict):
                content = turn.get("content") or turn.get("text")
                if not content:
                    continue
                role = turn.get("role") or turn.get("speaker")
                lines.append(f"{role}: {content}" if role else str(content))
            elif isinstance(turn, str) and turn.strip():
                lines.append(turn)
        return "\n".join(lines) if lines else None
    return None


def find_transcript(body: Any) -> Optional[str]:
    """Return the first non-empty transcript found in a vendor response."""
    if not isinstance(body, dict):
        return None
    for locate in TRANSCRIPT_LOCATIONS:
        text = _as_text(locate(body))
        if text:
            return text
    return None


class TranscriptService:
    """Fetches transcripts; "not ready yet" is reported as None, never raised."""

    def __init__(self, client: Optional[TavusClient] = None):
        self.client = client or get_tavus_client()

    async def fetch(self, conversation_id: str) -> Optional[str]:
        if not self.client.is_configured:
            logger.error("TAVUS_API_KEY is not set; cannot fetch transcript")
            return None

        logger.info(f"Fetching transcript for conversation: {conversation_id}")
        try:
            body = await self.client.get_conversation(conversation_id)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Tavus API error for {conversation_id}: {e.response.status_code} {e.response.text}"
            )
            return None
        except httpx.RequestError as e:
            logger.error(f"Tavus request failed for {conversation_id}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Tavus returned a non-JSON body for {conversation_id}: {e}")
            return None

        transcript = find_transcript(body)
        if transcript is None:
            logger.warning(f"No transcript found in Tavus response for {conversation_id}")
        return transcript


def get_transcript_service() -> TranscriptService:
    """Factory for TranscriptService."""
    return TranscriptService()
