"""WhatsApp API client - handles sending messages via Z-API."""

import base64
import logging
import re
import uuid
from typing import Any, Literal

import httpx

from app.config import get_settings
from app.errors import ConfigurationError, GatewayError
from app.services.identity import is_opaque_id

logger = logging.getLogger(__name__)
settings = get_settings()

PresenceAction = Literal["composing", "recording", "paused"]


def format_recipient(phone: str, opaque_id: str | None = None, country_code: str = "55") -> str:
    """Format a recipient for Z-API.

    Opaque ids are sent as-is. Phone numbers are reduced to digits and
    prefixed with the country code when missing.

    Args:
        phone: Stored contact phone (may be an opaque id)
        opaque_id: Opaque id, preferred when present
        country_code: Default country prefix

    Returns:
        Value for the ``phone`` field of Z-API requests
    """
    if opaque_id:
        return opaque_id
    if is_opaque_id(phone):
        return phone
    digits = re.sub(r"\D", "", phone or "")
    if not digits.startswith(country_code):
        digits = f"{country_code}{digits}"
    return digits


class ZapiClient:
    """Client for the Z-API WhatsApp gateway."""

    def __init__(
        self,
        instance_id: str | None = None,
        token: str | None = None,
        client_token: str | None = None,
        mock_mode: bool | None = None,
    ):
        """Initialize Z-API client.

        Args:
            instance_id: Z-API instance id (defaults to settings)
            token: Z-API instance token (defaults to settings)
            client_token: Account security token sent as ``Client-Token``
            mock_mode: If True, don't actually call Z-API. Defaults to True
                when no credentials are configured.
        """
        self.instance_id = instance_id or settings.zapi_instance_id
        self.token = token or settings.zapi_token
        self.client_token = client_token or settings.zapi_client_token
        if mock_mode is None:
            mock_mode = not (self.instance_id and self.token)
            if mock_mode:
                logger.warning("No Z-API credentials configured - WhatsApp client in mock mode")
        self.mock_mode = mock_mode
        self.base_url = (
            f"{settings.zapi_base_url}/instances/{self.instance_id}/token/{self.token}"
        )
        self.client = httpx.AsyncClient(timeout=30.0)

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.client_token:
            headers["Client-Token"] = self.client_token
        return headers

    def _require_credentials(self) -> None:
        if not (self.instance_id and self.token):
            raise ConfigurationError("Z-API credentials not configured")

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        """Call a Z-API endpoint and decode the JSON answer.

        Raises:
            GatewayError: On transport failure or non-2xx status
        """
        self._require_credentials()
        url = f"{self.base_url}/{path}"
        try:
            response = await self.client.request(method, url, json=json, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Z-API {path} failed: {e.response.status_code} {e.response.text}")
            raise GatewayError(
                f"Z-API {path} failed ({e.response.status_code})",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Z-API {path} request error: {e}")
            raise GatewayError(f"Z-API {path} request error: {e}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    @staticmethod
    def extract_message_id(result: Any) -> str | None:
        """Pull the provider message id out of a send response."""
        if not isinstance(result, dict):
            return None
        return result.get("messageId") or result.get("zapiMessageId") or result.get("id")

    async def send_text(self, phone: str, message: str) -> dict[str, Any]:
        """Send a text message.

        Args:
            phone: Formatted recipient (see ``format_recipient``)
            message: Message content

        Returns:
            Response from Z-API (or mock response)
        """
        if self.mock_mode:
            logger.info(
                f"📱 [MOCK] Sending WhatsApp message:\n"
                f"  To: {phone}\n"
                f"  Message: {message}"
            )
            return {"messageId": f"mock_msg_{uuid.uuid4().hex}", "zaapId": None}

        result = await self._request("POST", "send-text", {"phone": phone, "message": message})
        logger.info(f"✅ Sent WhatsApp message via Z-API to {phone} (id: {self.extract_message_id(result)})")
        return result

    async def send_audio(self, phone: str, audio: bytes) -> dict[str, Any]:
        """Send an mp3 voice message as a base64 data URI.

        Args:
            phone: Formatted recipient
            audio: mp3 bytes

        Returns:
            Response from Z-API (or mock response)

        Raises:
            GatewayError: If Z-API rejects the audio
        """
        if self.mock_mode:
            logger.info(f"📱 [MOCK] Sending WhatsApp audio to {phone} ({len(audio)} bytes)")
            return {"messageId": f"mock_audio_{uuid.uuid4().hex}"}

        data_uri = f"data:audio/mpeg;base64,{base64.b64encode(audio).decode('ascii')}"
        result = await self._request("POST", "send-audio", {"phone": phone, "audio": data_uri})
        if isinstance(result, dict) and result.get("error"):
            raise GatewayError(f"Z-API send-audio failed: {result.get('error')}")
        logger.info(f"✅ Sent WhatsApp audio via Z-API to {phone}")
        return result

    async def _presence_call(self, path: str, body: dict[str, Any]) -> bool:
        try:
            result = await self._request("POST", path, body)
        except GatewayError:
            return False
        return not (isinstance(result, dict) and result.get("error"))

    async def send_presence(self, phone: str, action: PresenceAction) -> bool:
        """Show a typing/recording indicator, or clear it with ``paused``.

        Tries ``chat-presence`` first, then ``send-action-chat``, then the legacy
        ``typing``/``recording`` endpoints. Failures are logged, never raised.

        Returns:
            True if some endpoint accepted the indicator
        """
        if self.mock_mode:
            logger.debug(f"📱 [MOCK] Presence '{action}' for {phone}")
            return True

        try:
            self._require_credentials()
        except ConfigurationError as e:
            logger.warning(f"Presence '{action}' not sent: {e}")
            return False

        await self._presence_call("update-presence", {"phone": phone, "presence": "available"})
        if action == "paused":
            return True

        if await self._presence_call("chat-presence", {"phone": phone, "presence": action}):
            return True
        if await self._presence_call("send-action-chat", {"phone": phone, "action": action}):
            return True

        legacy = "typing" if action == "composing" else "recording"
        if await self._presence_call(legacy, {"phone": phone, "value": True}):
            return True

        logger.warning(f"All presence endpoints failed for action '{action}'")
        return False

    async def configure_webhooks(self, webhook_url: str) -> dict[str, Any]:
        """Point the instance's received, delivery and status webhooks at ``webhook_url``.

        Returns:
            Mapping of Z-API endpoint -> response (or error text)
        """
        endpoints = (
            "update-webhook-received",
            "update-webhook-delivery",
            "update-webhook-message-status",
        )
        results: dict[str, Any] = {}
        for endpoint in endpoints:
            if self.mock_mode:
                logger.info(f"📱 [MOCK] {endpoint} -> {webhook_url}")
                results[endpoint] = {"value": True}
                continue
            try:
                results[endpoint] = await self._request("PUT", endpoint, {"value": webhook_url})
            except GatewayError as e:
                results[endpoint] = {"error": str(e)}
        return results

    async def list_chats(self) -> list[dict[str, Any]]:
        """List the instance's chats, most recent first."""
        if self.mock_mode:
            return []
        result = await self._request("GET", "chats")
        return result if isinstance(result, list) else []

    async def get_chat_messages(self, phone: str) -> list[dict[str, Any]]:
        """Fetch the stored messages of one chat."""
        if self.mock_mode:
            return []
        result = await self._request("GET", f"chat-messages/{phone}")
        if isinstance(result, dict):
            result = result.get("messages") or []
        return result if isinstance(result, list) else []

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


_client: ZapiClient | None = None


def get_zapi_client() -> ZapiClient:
    """Get singleton Z-API client instance."""
    global _client
    if _client is None:
        _client = ZapiClient()
    return _client


async def close_zapi_client() -> None:
    """Close the singleton client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
