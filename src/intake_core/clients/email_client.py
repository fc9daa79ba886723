"""Transactional email client (Resend HTTP API)."""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from intake_core.config import get_settings

logger = logging.getLogger(__name__)


class EmailClient:
    """Send transactional email through Resend.

    Without an API key the client only logs what it would have sent, so local
    environments run the full notification flow.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        from_address: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.email.resend_api_key
        self.api_url = api_url or settings.email.api_url
        self.from_address = from_address or settings.email.from_address
        self.timeout = timeout if timeout is not None else settings.email.timeout

    async def send(self, to: Union[str, List[str]], subject: str, html: str) -> Dict[str, Any]:
        """
        Send one email.

        Returns:
            {"sent": bool, "id": provider message id or None}

        Raises:
            httpx.HTTPStatusError: If Resend rejects the message
            httpx.RequestError: If the request fails
        """
        recipients = [to] if isinstance(to, str) else list(to)

        if not self.api_key:
            logger.info(f"Email delivery not configured; would send {subject!r} to {recipients}")
            return {"sent": False, "id": None}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json={"from": self.from_address, "to": recipients, "subject": subject, "html": html},
            )
            response.raise_for_status()
            data = response.json() if response.text else {}

        logger.info(f"Email {subject!r} sent to {recipients}")
        return {"sent": True, "id": data.get("id")}


_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get the shared email client."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
