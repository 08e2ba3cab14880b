"""Data types shared by the store, the actor and the webhook layer."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MISSING_CONTACT_OR_MESSAGE, WebhookValidationError

MAX_MESSAGES = 20


# -----------------------------
# Conversation messages
# -----------------------------
class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single persisted conversation message."""

    role: Role
    content: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_chat(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def append_message(
    history: List[Message], message: Message, limit: int = MAX_MESSAGES
) -> List[Message]:
    """Return ``history + [message]`` trimmed to the newest ``limit`` entries."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    out = list(history)
    out.append(message)
    if len(out) > limit:
        out = out[-limit:]
    return out


def derive_user_key(wa_id: str) -> str:
    """Map a provider user id to a stable, filesystem-safe key."""
    ident = (wa_id or "").strip()
    if not ident:
        raise ValueError("wa_id cannot be empty")
    return hashlib.sha256(ident.encode("utf-8")).hexdigest()


# -----------------------------
# WhatsApp webhook payload
# -----------------------------
class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Profile(_Payload):
    name: Optional[str] = None


class Contact(_Payload):
    wa_id: str
    profile: Optional[Profile] = None


class TextBody(_Payload):
    body: str = ""


class InboundMessage(_Payload):
    id: str
    from_: Optional[str] = Field(default=None, alias="from")
    timestamp: Union[str, int]
    type: str
    text: Optional[TextBody] = None


class Metadata(_Payload):
    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class ChangeValue(_Payload):
    messaging_product: Optional[str] = None
    metadata: Optional[Metadata] = None
    contacts: Optional[List[Contact]] = None
    messages: Optional[List[InboundMessage]] = None


class Change(_Payload):
    value: Optional[ChangeValue] = None


class Entry(_Payload):
    changes: List[Change] = Field(default_factory=list)


class WebhookPayload(_Payload):
    entry: List[Entry] = Field(default_factory=list)

    def first_value(self) -> Optional[ChangeValue]:
        if not self.entry or not self.entry[0].changes:
            return None
        return self.entry[0].changes[0].value


# -----------------------------
# Transient events
# -----------------------------
@dataclass
class InboundEvent:
    wa_id: str
    message_id: str
    message_type: str
    timestamp: datetime
    text: Optional[str] = None
    profile_name: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.message_type == "text" and bool(self.text)


@dataclass
class OutboundReply:
    recipient: str
    body: str


def parse_timestamp(raw: Any) -> datetime:
    """Provider timestamps are epoch seconds sent as strings."""
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.now(timezone.utc)


def parse_event(raw: Any) -> InboundEvent:
    """Extract the first contact/message pair from a webhook body.

    Raises :class:`WebhookValidationError` when the body is not a message
    event; status callbacks arrive on the same endpoint without
    ``contacts``/``messages``.
    """
    if isinstance(raw, WebhookPayload):
        payload = raw
    else:
        if not isinstance(raw, dict):
            raise WebhookValidationError()
        try:
            payload = WebhookPayload.model_validate(raw)
        except ValidationError as e:
            raise WebhookValidationError() from e

    value = payload.first_value()
    if value is None or value.messages is None or value.contacts is None:
        raise WebhookValidationError()
    if not value.contacts or not value.messages:
        raise WebhookValidationError(MISSING_CONTACT_OR_MESSAGE)

    contact = value.contacts[0]
    message = value.messages[0]
    if not contact.wa_id.strip():
        raise WebhookValidationError(MISSING_CONTACT_OR_MESSAGE)
    return InboundEvent(
        wa_id=contact.wa_id,
        message_id=message.id,
        message_type=message.type,
        timestamp=parse_timestamp(message.timestamp),
        text=message.text.body if message.text else None,
        profile_name=contact.profile.name if contact.profile else None,
    )
