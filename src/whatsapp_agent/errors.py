"""Error kinds raised by the collaborators and the result the actor reports."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

INVALID_WEBHOOK_DATA = "Invalid webhook data"
MISSING_CONTACT_OR_MESSAGE = "Missing contact or message"
UNSUPPORTED_MESSAGE_TYPE = "Unsupported message type"
DELIVERY_FAILED = "Failed to send WhatsApp message"

UNSUPPORTED_NOTICE = "Sorry, I can only process text messages in this demo."
GENERATION_APOLOGY = "I apologize, but I encountered an error. Please try again."
EMPTY_GENERATION_FALLBACK = "I'm sorry, I couldn't generate a response."


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNSUPPORTED_CONTENT = "unsupported_content"
    GENERATION = "generation"
    DELIVERY = "delivery"
    RECEIPT = "receipt"
    INTERNAL = "internal"

    @property
    def surfaced(self) -> bool:
        """Whether this kind reaches the caller or is only logged."""
        return self not in (ErrorKind.GENERATION, ErrorKind.RECEIPT)


class RelayError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL


class WebhookValidationError(RelayError):
    """Payload is malformed or is not a message event (e.g. a status update)."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str = INVALID_WEBHOOK_DATA) -> None:
        super().__init__(message)


class UnsupportedContentError(RelayError):
    kind = ErrorKind.UNSUPPORTED_CONTENT

    def __init__(self, message_type: str) -> None:
        super().__init__(f"{UNSUPPORTED_MESSAGE_TYPE}: {message_type}")
        self.message_type = message_type


class GenerationError(RelayError):
    kind = ErrorKind.GENERATION


class DeliveryError(RelayError):
    kind = ErrorKind.DELIVERY

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReceiptError(RelayError):
    kind = ErrorKind.RECEIPT

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ProcessResult:
    success: bool
    error: Optional[str] = None
    response: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, response: str) -> "ProcessResult":
        return cls(success=True, response=response)

    @classmethod
    def failed(cls, error: str, kind: ErrorKind) -> "ProcessResult":
        return cls(success=False, error=error, kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            out["error"] = self.error
        if self.response is not None:
            out["response"] = self.response
        return out
