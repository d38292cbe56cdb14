"""
Twilio WhatsApp Sender.

Sends alert messages to the fund's WhatsApp recipients via the Twilio
Messages API.
"""

from typing import Optional

import httpx
import structlog
from pydantic import BaseModel

from fundwatch.config import Settings
from fundwatch.exceptions import DispatchError

logger = structlog.get_logger(__name__)


class TwilioConfig(BaseModel):
    """Twilio configuration (Account SID + Auth Token)."""

    account_sid: str = ""
    auth_token: str = ""
    whatsapp_number: str = ""       # e.g. "whatsapp:+14155238886"
    recipients: list[str] = []
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwilioConfig":
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            whatsapp_number=settings.twilio_whatsapp_number,
            recipients=settings.whatsapp_group_recipients,
        )


_CATEGORY_HEADERS = {
    "alert": "🚨 ALERT",
    "report": "📊 REPORT",
    "reminder": "⏰ REMINDER",
}


class TwilioWhatsAppSender:
    """
    WhatsApp sender using the Twilio API.

    Usage:
        sender = TwilioWhatsAppSender(config)
        await sender.send("Total today: $125.50", category="alert")
        await sender.close()
    """

    TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

    def __init__(self, config: TwilioConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(
            self._config.account_sid
            and self._config.auth_token
            and self._config.whatsapp_number
            and self._config.recipients
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.TWILIO_API_BASE,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                auth=(self._config.account_sid, self._config.auth_token),
            )
        return self._client

    async def send(self, message: str, category: str) -> None:
        """Send a message to every configured recipient; raises on the first failure."""
        if not self.is_configured:
            raise DispatchError("messaging", "Twilio credentials or recipients not configured")

        header = _CATEGORY_HEADERS.get(category, category.upper())
        body = f"*{header}*\n\n{message}"
        client = self._http()

        for recipient in self._config.recipients:
            to = self._format_whatsapp_number(recipient)
            try:
                response = await client.post(
                    f"/Accounts/{self._config.account_sid}/Messages.json",
                    data={
                        "From": self._config.whatsapp_number,
                        "To": to,
                        "Body": body,
                    },
                )
            except httpx.HTTPError as e:
                logger.error("twilio_http_error", to=to, error=str(e))
                raise DispatchError("messaging", str(e)) from e

            try:
                data = response.json()
            except ValueError:
                data = {}
            if not response.is_success:
                logger.error(
                    "whatsapp_send_failed",
                    to=to,
                    error_code=data.get("code"),
                    error_message=data.get("message"),
                )
                raise DispatchError(
                    "messaging",
                    data.get("message") or f"HTTP {response.status_code}",
                    {"error_code": data.get("code")},
                )

            logger.info(
                "whatsapp_message_sent",
                message_sid=data.get("sid"),
                to=to,
                category=category,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _format_whatsapp_number(phone: str) -> str:
        """Format phone number for WhatsApp."""
        if phone.startswith("whatsapp:"):
            return phone

        phone = phone.replace(" ", "").replace("-", "")
        if not phone.startswith("+"):
            phone = "+" + phone
        return f"whatsapp:{phone}"
