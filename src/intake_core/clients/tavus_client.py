"""HTTP client for the Tavus conversational video API."""

import logging
from typing import Any, Dict, Optional

import httpx

from intake_core.config import get_settings

logger = logging.getLogger(__name__)


class TavusClient:
    """
    Thin async client for the Tavus v2 conversations API.

    Authenticates with the `x-api-key` header. Every call opens its own
    `httpx.AsyncClient`; errors are raised as httpx exceptions for the caller
    to interpret.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.tavus.api_key
        self.base_url = (base_url or settings.tavus.api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.tavus.timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key or "", "Content-Type": "application/json"}

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        """
        Fetch a conversation, including its transcript when available.

        Raises:
            httpx.HTTPStatusError: If Tavus answers with a non-2xx status
            httpx.RequestError: If the request fails
        """
        url = f"{self.base_url}/v2/conversations/{conversation_id}"
        logger.debug(f"GET {url}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, headers=self._headers())
            response.raise_for_status()
            return response.json()

    async def create_conversation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Start a new conversation session."""
        url = f"{self.base_url}/v2/conversations"
        logger.debug(f"POST {url}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, headers=self._headers(), json=payload)
            response.raise_for_status()
            return response.json()

    async def end_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """End a running conversation session."""
        url = f"{self.base_url}/v2/conversations/{conversation_id}/end"
        logger.debug(f"POST {url}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, headers=self._headers())
            response.raise_for_status()
            if response.status_code == 204 or not response.text:
                return None
            return response.json()


_tavus_client: Optional[TavusClient] = None


def get_tavus_client() -> TavusClient:
    """Get the shared Tavus client."""
    global _tavus_client
    if _tavus_client is None:
        _tavus_client = TavusClient()
    return _tavus_client
