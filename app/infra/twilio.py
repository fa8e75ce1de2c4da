"""
Twilio WhatsApp transport.

Outbound messages go through the Twilio Messages REST API:
- POST /Accounts/{sid}/Messages.json  (From, To, Body as form fields)

Inbound messages arrive on the webhook route; Twilio addresses look like
"whatsapp:+5491155550000" and are normalised to the bare phone here.
"""

import logging
from typing import Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"

# Twilio rejects bodies above this length
MAX_BODY_LENGTH = 1600


class TwilioClientError(Exception):
    """Raised when Twilio refuses or cannot receive a message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def normalize_phone(address: str) -> str:
    """Strip the "whatsapp:" channel prefix: "whatsapp:+54911" -> "+54911"."""
    address = (address or "").strip()
    if address.startswith(WHATSAPP_PREFIX):
        return address[len(WHATSAPP_PREFIX):]
    return address


def to_whatsapp_address(phone: str) -> str:
    """Inverse of normalize_phone."""
    phone = phone.strip()
    return phone if phone.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{phone}"


class TwilioWhatsAppClient:
    """
    Async client for sending WhatsApp messages.

    Without credentials (local development) messages are only logged.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """Initialize client.

        Args:
            account_sid: Twilio account SID (defaults to settings)
            auth_token: Twilio auth token (defaults to settings)
            from_number: Sender WhatsApp number (defaults to settings)
            api_base: REST API root (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.account_sid = account_sid or settings.twilio_account_sid
        self.auth_token = auth_token or settings.twilio_auth_token
        self.from_number = from_number or settings.twilio_whatsapp_from
        self.api_base = (api_base or settings.twilio_api_base).rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.api_base}/Accounts/{self.account_sid}",
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send_message(self, phone: str, text: str) -> Optional[str]:
        """
        Send a WhatsApp text.

        Args:
            phone: Recipient phone, with or without the "whatsapp:" prefix
            text: Message body

        Returns:
            Twilio message SID, or None when sending is disabled

        Raises:
            TwilioClientError: If the request fails or Twilio rejects it
        """
        if not self.is_configured:
            logger.warning(f"Twilio not configured, message to {phone} not sent: {text[:80]!r}")
            return None

        if len(text) > MAX_BODY_LENGTH:
            logger.warning(f"Message to {phone} truncated from {len(text)} characters")
            text = text[:MAX_BODY_LENGTH]

        client = await self._get_client()

        try:
            response = await client.post(
                "/Messages.json",
                data={
                    "From": to_whatsapp_address(self.from_number),
                    "To": to_whatsapp_address(phone),
                    "Body": text,
                },
            )
            response.raise_for_status()

        except httpx.HTTPStatusError as e:
            logger.error(
                f"Twilio rejected message to {phone}: "
                f"{e.response.status_code} {e.response.text}"
            )
            raise TwilioClientError(
                f"Twilio returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e

        except httpx.HTTPError as e:
            logger.error(f"Failed to send message to {phone}: {e}")
            raise TwilioClientError(str(e)) from e

        message_sid = response.json().get("sid")
        logger.info(f"Message {message_sid} sent to {phone}")
        return message_sid


# Singleton
_client: Optional[TwilioWhatsAppClient] = None


def get_whatsapp_client() -> TwilioWhatsAppClient:
    """Get singleton WhatsApp client."""
    global _client
    if _client is None:
        _client = TwilioWhatsAppClient()
    return _client
