"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from whatsapp_agent.errors import DeliveryError, GenerationError, ReceiptError  # noqa: E402
from whatsapp_agent.memory import InMemoryHistoryStore  # noqa: E402


# -----------------------------
# Fakes for the collaborators
# -----------------------------
class FakeGenerator:
    """Returns a fixed reply and records every call."""

    def __init__(self, reply: str = "Hi! How can I help?", fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.calls: List[Tuple[str, List[Any]]] = []

    def generate(self, system_prompt: str, messages: Sequence[Any]) -> str:
        self.calls.append((system_prompt, list(messages)))
        if self.fail:
            raise GenerationError("model unavailable")
        return self.reply


class FakeChannel:
    """Records sends and receipts; can be told to fail either."""

    def __init__(self, fail_send: bool = False, fail_receipt: bool = False):
        self.fail_send = fail_send
        self.fail_receipt = fail_receipt
        self.sent: List[Tuple[str, str]] = []
        self.receipts: List[str] = []

    def send_text(self, body: str, recipient: str) -> None:
        self.sent.append((body, recipient))
        if self.fail_send:
            raise DeliveryError("Failed to send WhatsApp message: 401", status_code=401)

    def mark_as_read(self, message_id: str, show_typing: bool = True) -> None:
        self.receipts.append(message_id)
        if self.fail_receipt:
            raise ReceiptError("receipt rejected", status_code=500)


def make_payload(
    text: Optional[str] = "Hello",
    *,
    wa_id: str = "15551234567",
    message_id: str = "wamid.ABC",
    msg_type: str = "text",
    timestamp: str = "1700000000",
) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        "from": wa_id,
        "id": message_id,
        "timestamp": timestamp,
        "type": msg_type,
    }
    if text is not None and msg_type == "text":
        message["text"] = {"body": text}
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {
                                "display_phone_number": "15550000000",
                                "phone_number_id": "PHONE_ID",
                            },
                            "contacts": [{"profile": {"name": "Ada"}, "wa_id": wa_id}],
                            "messages": [message],
                        },
                    }
                ],
            }
        ],
    }


def status_payload() -> Dict[str, Any]:
    """Delivery-status callback: no contacts/messages."""
    return {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "statuses": [{"id": "wamid.ABC", "status": "delivered"}],
                        }
                    }
                ]
            }
        ]
    }


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture(scope="function")
def tmp_data_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for conversation files during tests."""
    d = tmp_path / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    for var in [
        "WHATSAPP_AGENT_CONFIG",
        "OPENAI_API_KEY",
        "SENDER_PHONE",
        "FACEBOOK_AUTH_TOKEN",
        "WEBHOOK_VERIFY_TOKEN",
    ]:
        monkeypatch.delenv(var, raising=False)
    yield
