"""Routes webhook payloads to the conversation actor of the sending user."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .actor import DEFAULT_SYSTEM_PROMPT, ConversationActor
from .errors import ProcessResult, WebhookValidationError
from .llm import ResponseGenerator
from .memory import ConversationMemory, HistoryStore
from .models import MAX_MESSAGES, derive_user_key, parse_event
from .whatsapp import DeliveryChannel

logger = logging.getLogger(__name__)

NOT_A_MESSAGE = "Not a valid message object"


@dataclass
class DispatchOutcome:
    """``handled`` is False for acknowledged non-message payloads."""

    handled: bool
    result: Optional[ProcessResult] = None
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.handled or bool(self.result and self.result.success)


class Dispatcher:
    """Registry of one :class:`ConversationActor` per user key.

    Lookups and creation happen under a registry lock; message processing
    happens outside it, on the actor's own lock.
    """

    def __init__(
        self,
        store: HistoryStore,
        generator: ResponseGenerator,
        channel: DeliveryChannel,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_messages: int = MAX_MESSAGES,
    ) -> None:
        self.store = store
        self.generator = generator
        self.channel = channel
        self.system_prompt = system_prompt
        self.max_messages = max_messages
        self._actors: Dict[str, ConversationActor] = {}
        self._lock = threading.Lock()

    def actor_for(self, wa_id: str) -> ConversationActor:
        key = derive_user_key(wa_id)
        with self._lock:
            actor = self._actors.get(key)
            if actor is None:
                memory = ConversationMemory(self.store, key, max_messages=self.max_messages)
                actor = ConversationActor(
                    key,
                    memory,
                    self.generator,
                    self.channel,
                    system_prompt=self.system_prompt,
                )
                self._actors[key] = actor
            return actor

    def dispatch(self, payload: Any) -> DispatchOutcome:
        try:
            event = parse_event(payload)
        except WebhookValidationError as e:
            logger.debug("Ignoring webhook without a message: %s", e)
            return DispatchOutcome(handled=False, reason=NOT_A_MESSAGE)

        logger.info("WhatsApp message received")
        result = self.actor_for(event.wa_id).process_message(payload)
        if not result.success:
            logger.error("Processing failed: %s", result.error)
        return DispatchOutcome(handled=True, result=result)

    def clear(self, wa_id: str) -> None:
        self.actor_for(wa_id).clear_history()

    def __len__(self) -> int:
        return len(self._actors)
