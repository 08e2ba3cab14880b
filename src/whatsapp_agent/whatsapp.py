"""WhatsApp Business (Graph API) delivery channel."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import DeliveryError, ReceiptError

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com"
API_VERSION = "v22.0"
TIMEOUT = httpx.Timeout(connect=5.0, read=20.0, write=10.0, pool=5.0)


class DeliveryChannel(Protocol):
    def send_text(self, body: str, recipient: str) -> None:
        """Send ``body`` to ``recipient``; raise :class:`DeliveryError` on failure."""
        ...

    def mark_as_read(self, message_id: str, show_typing: bool = True) -> None:
        """Acknowledge an inbound message; raise :class:`ReceiptError` on failure."""
        ...


class WhatsAppClient:
    """Posts to ``/{version}/{sender_phone}/messages`` with a bearer token."""

    def __init__(
        self,
        sender_phone: str,
        auth_token: str,
        *,
        api_version: str = API_VERSION,
        base_url: str = GRAPH_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not sender_phone:
            raise ValueError("sender_phone is required")
        self.sender_phone = sender_phone
        self.api_version = api_version
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {auth_token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(float(timeout)) if timeout else TIMEOUT,
            transport=transport,
        )

    @property
    def messages_path(self) -> str:
        return f"/{self.api_version}/{self.sender_phone}/messages"

    def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        return self._client.post(self.messages_path, json=payload)

    def send_text(self, body: str, recipient: str) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": body},
        }
        try:
            resp = self._post(payload)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Failed to send WhatsApp message: {e}") from e
        if resp.is_error:
            raise DeliveryError(
                f"Failed to send WhatsApp message: {resp.text}", status_code=resp.status_code
            )

    def mark_as_read(self, message_id: str, show_typing: bool = True) -> None:
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }
        # Typing indicator stays visible while the reply is generated.
        if show_typing:
            payload["typing_indicator"] = {"type": "text"}
        try:
            resp = self._post(payload)
        except httpx.HTTPError as e:
            raise ReceiptError(f"Failed to mark message as read: {e}") from e
        if resp.is_error:
            raise ReceiptError(
                f"Failed to mark message as read: {resp.text}", status_code=resp.status_code
            )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WhatsAppClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def create_channel(cfg: Dict[str, Any]) -> WhatsAppClient:
    """Create a WhatsAppClient from the ``whatsapp`` section of a config dict."""
    wa_cfg = (cfg or {}).get("whatsapp", {}) if isinstance(cfg, dict) else {}
    sender = str(wa_cfg.get("sender_phone") or "")
    token = str(wa_cfg.get("auth_token") or "")
    if not token:
        logger.warning("whatsapp.auth_token is not set; outbound calls will be rejected")
    return WhatsAppClient(
        sender,
        token,
        api_version=str(wa_cfg.get("api_version", API_VERSION)),
        base_url=str(wa_cfg.get("base_url", GRAPH_URL)),
        timeout=wa_cfg.get("timeout"),
    )
