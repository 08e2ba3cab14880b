from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import make_payload, status_payload
from whatsapp_agent.errors import (
    INVALID_WEBHOOK_DATA,
    MISSING_CONTACT_OR_MESSAGE,
    ErrorKind,
    WebhookValidationError,
)
from whatsapp_agent.models import Message, Role, derive_user_key, parse_event


def test_user_key_is_deterministic_and_distinct():
    assert derive_user_key("15551234567") == derive_user_key("15551234567")
    assert derive_user_key(" 15551234567 ") == derive_user_key("15551234567")
    assert derive_user_key("15551234567") != derive_user_key("15551234568")
    # Characters a filename sanitiser would fold together stay distinct.
    assert derive_user_key("a/b") != derive_user_key("a_b")


def test_user_key_rejects_empty():
    with pytest.raises(ValueError):
        derive_user_key("  ")


def test_message_requires_content():
    with pytest.raises(ValidationError):
        Message(role=Role.USER, content="")


def test_message_role_vocabulary_is_fixed():
    with pytest.raises(ValidationError):
        Message(role="tool", content="x")


def test_parse_event_text_message():
    event = parse_event(make_payload("Hello", timestamp="1700000000"))
    assert event.wa_id == "15551234567"
    assert event.message_id == "wamid.ABC"
    assert event.is_text
    assert event.text == "Hello"
    assert event.profile_name == "Ada"
    assert event.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)


def test_parse_event_non_text_message():
    event = parse_event(make_payload(None, msg_type="image"))
    assert event.message_type == "image"
    assert not event.is_text


@pytest.mark.parametrize("raw", [status_payload(), {}, {"entry": []}, [], "nope"])
def test_parse_event_rejects_non_message_payloads(raw):
    with pytest.raises(WebhookValidationError) as exc:
        parse_event(raw)
    assert str(exc.value) == INVALID_WEBHOOK_DATA
    assert exc.value.kind is ErrorKind.VALIDATION


def test_parse_event_empty_lists():
    raw = make_payload("Hello")
    raw["entry"][0]["changes"][0]["value"]["contacts"] = []
    with pytest.raises(WebhookValidationError) as exc:
        parse_event(raw)
    assert str(exc.value) == MISSING_CONTACT_OR_MESSAGE


def test_error_kinds_surfacing():
    assert ErrorKind.DELIVERY.surfaced
    assert ErrorKind.UNSUPPORTED_CONTENT.surfaced
    assert not ErrorKind.GENERATION.surfaced
    assert not ErrorKind.RECEIPT.surfaced
