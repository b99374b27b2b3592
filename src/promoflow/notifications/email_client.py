"""Client for the SendGrid mail send API"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class SendGridClient:
    """HTTP client for SendGrid v3 mail send"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.sendgrid.com/v3",
        timeout: float = 30.0
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = None

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def __aenter__(self):
        """Async context manager entry"""
        self.client = httpx.AsyncClient(headers=self._get_headers(), timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client:
            await self.client.aclose()

    async def send(
        self,
        to_email: str,
        from_email: str,
        subject: str,
        html: str,
        to_name: Optional[str] = None
    ) -> None:
        """Send a single HTML email"""

        recipient = {"email": to_email}
        if to_name:
            recipient["name"] = to_name

        payload = {
            "personalizations": [{"to": [recipient]}],
            "from": {"email": from_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }

        try:
            if not self.client:
                self.client = httpx.AsyncClient(headers=self._get_headers(), timeout=self.timeout)
            response = await self.client.post(f"{self.base_url}/mail/send", json=payload)
            response.raise_for_status()
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise
