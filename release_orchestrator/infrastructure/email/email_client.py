import logging
from typing import Any, Dict, List, Optional

import httpx

from release_orchestrator.config import settings

logger = logging.getLogger(__name__)


class EmailClient:
    """Sends plain-text alert mail through a transactional email HTTP API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        recipients: Optional[List[str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key if api_key is not None else settings.EMAIL_API_KEY
        self._api_url = api_url or settings.EMAIL_API_URL
        self._sender = sender or settings.ALERT_EMAIL_FROM
        self._recipients = recipients or settings.alert_recipients
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    def is_configured(self) -> bool:
        return bool(self._api_key and self._recipients)

    async def send(self, subject: str, text: str) -> Dict[str, Any]:
        """Send one message to every configured recipient; raises httpx.HTTPStatusError on rejection."""
        response = await self.client.post(
            self._api_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            json={
                "from": self._sender,
                "to": self._recipients,
                "subject": subject,
                "text": text,
            },
        )
        response.raise_for_status()
        logger.info(f"📧 Alert email sent to {len(self._recipients)} recipient(s): {subject}")
        return response.json() if response.content else {}

    async def close(self):
        await self.client.aclose()
