"""
Transactional email through the Resend HTTP API.

Sending is best-effort: a failed send is logged and reported as False, it
never fails the request that triggered it.
"""

from html import escape
from typing import Optional

import httpx
import structlog

from storefront.config import get_settings
from storefront.config.settings import EmailSettings

logger = structlog.get_logger(__name__)


class EmailService:
    """Send single HTML emails."""

    def __init__(
        self,
        settings: Optional[EmailSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().email
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.enabled and self.settings.api_key is not None

    async def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        if not self.is_configured:
            logger.info("Email disabled, skipping send", to=to, subject=subject)
            return False

        payload = {
            "from": self.settings.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        try:
            async with httpx.AsyncClient(
                base_url=self.settings.api_url,
                headers={"Authorization": f"Bearer {self.settings.api_key.get_secret_value()}"},
                timeout=self.settings.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/emails", json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Email send failed", to=to, subject=subject, error=str(e))
            return False

        logger.info("Email sent", to=to, subject=subject)
        return True

    async def send_welcome(self, to: str, first_name: str) -> bool:
        return await self.send(
            to,
            "Welcome to Modahaus!",
            f"<h1>Welcome, {escape(first_name)}!</h1>"
            "<p>Thank you for registering at Modahaus. We're excited to have you.</p>",
        )
