"""Per-user conversation actor: one message at a time per user key."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, List

from .errors import (
    DELIVERY_FAILED,
    EMPTY_GENERATION_FALLBACK,
    GENERATION_APOLOGY,
    UNSUPPORTED_MESSAGE_TYPE,
    UNSUPPORTED_NOTICE,
    DeliveryError,
    ErrorKind,
    GenerationError,
    ProcessResult,
    ReceiptError,
    UnsupportedContentError,
    WebhookValidationError,
)
from .llm import ResponseGenerator
from .memory import ConversationMemory
from .models import InboundEvent, Message, OutboundReply, Role, derive_user_key, parse_event
from .whatsapp import DeliveryChannel

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant communicating via WhatsApp.\n"
    "Be friendly, concise, and helpful. Keep your responses conversational and not too long."
)


def _preview(text: str, n: int = 100) -> str:
    return text if len(text) <= n else text[:n] + "..."


class ConversationActor:
    """Owns one user's history and orchestrates generation and delivery.

    ``process_message`` holds the actor lock for the whole pass, including
    the receipt, generation and delivery calls, so a slow collaborator only
    delays this user's later messages. Actors for other keys never share
    the lock.
    """

    def __init__(
        self,
        key: str,
        memory: ConversationMemory,
        generator: ResponseGenerator,
        channel: DeliveryChannel,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        if memory.key != key:
            raise ValueError("memory is bound to a different key")
        self.key = key
        self.memory = memory
        self.generator = generator
        self.channel = channel
        self.system_prompt = system_prompt
        self._lock = threading.Lock()

    # --------- public API ----------
    def process_message(self, payload: Any) -> ProcessResult:
        with self._lock:
            try:
                return self._process(payload)
            except Exception as e:
                logger.exception("Error processing message for %s: %s", self.key[:12], e)
                return ProcessResult.failed(str(e), ErrorKind.INTERNAL)

    def clear_history(self) -> None:
        with self._lock:
            self.memory.clear()

    def history(self) -> List[Message]:
        return self.memory.load()

    # --------- steps ----------
    def _process(self, payload: Any) -> ProcessResult:
        try:
            event = parse_event(payload)
        except WebhookValidationError as e:
            return ProcessResult.failed(str(e), ErrorKind.VALIDATION)
        if derive_user_key(event.wa_id) != self.key:
            logger.error("Event for another user was routed to %s", self.key[:12])
            return ProcessResult.failed("Message routed to the wrong conversation", ErrorKind.INTERNAL)

        self._send_receipt(event)

        try:
            text = self._require_text(event)
        except UnsupportedContentError as e:
            logger.info("Rejecting %s", e)
            self._send_unsupported_notice(event)
            return ProcessResult.failed(UNSUPPORTED_MESSAGE_TYPE, ErrorKind.UNSUPPORTED_CONTENT)

        logger.info("User: %s", _preview(text))
        user_message = Message(role=Role.USER, content=text, timestamp=event.timestamp)
        history = self.memory.append(user_message)

        reply_text = self._generate(history)
        logger.info("Assistant: %s", _preview(reply_text))

        assistant_message = Message(
            role=Role.ASSISTANT, content=reply_text, timestamp=datetime.now(timezone.utc)
        )
        self.memory.append(assistant_message)

        reply = OutboundReply(recipient=event.wa_id, body=reply_text)
        try:
            self.channel.send_text(reply.body, reply.recipient)
        except DeliveryError as e:
            logger.error("%s: %s", DELIVERY_FAILED, e)
            return ProcessResult.failed(DELIVERY_FAILED, ErrorKind.DELIVERY)

        logger.info("Message sent")
        return ProcessResult.ok(reply_text)

    def _send_receipt(self, event: InboundEvent) -> None:
        try:
            self.channel.mark_as_read(event.message_id)
        except ReceiptError as e:
            logger.warning("Failed to send read receipt: %s", e)
        except Exception as e:
            logger.warning("Unexpected read receipt failure: %r", e)

    @staticmethod
    def _require_text(event: InboundEvent) -> str:
        if not event.is_text:
            raise UnsupportedContentError(event.message_type)
        return event.text or ""

    def _send_unsupported_notice(self, event: InboundEvent) -> None:
        try:
            self.channel.send_text(UNSUPPORTED_NOTICE, event.wa_id)
        except DeliveryError as e:
            logger.error("Failed to send unsupported-type notice: %s", e)

    def _generate(self, history: List[Message]) -> str:
        try:
            text = self.generator.generate(self.system_prompt, history)
        except GenerationError as e:
            logger.warning("Error generating response, sending apology: %s", e)
            return GENERATION_APOLOGY
        except Exception as e:
            logger.exception("Unexpected generator failure, sending apology: %s", e)
            return GENERATION_APOLOGY
        return text if text and text.strip() else EMPTY_GENERATION_FALLBACK
