"""Per-user conversation history behind a small key/value storage interface."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from .models import MAX_MESSAGES, Message, append_message

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    os.replace(tmp_name, path)


def _dump(messages: Sequence[Message]) -> Dict[str, Any]:
    return {"messages": [m.model_dump(mode="json") for m in messages]}


def _load(obj: Any) -> List[Message]:
    rows = obj.get("messages") if isinstance(obj, dict) else None
    if not isinstance(rows, list):
        raise ValueError("expected an object with a 'messages' list")
    return [Message.model_validate(r) for r in rows]


# -----------------------------
# Storage backends
# -----------------------------
class HistoryStore(ABC):
    """Keyed storage for one ordered message list per user key.

    Each record is read and written as a whole; there are no partial updates
    and no transactions spanning more than one key.
    """

    @abstractmethod
    def get(self, key: str) -> List[Message]:
        """Return the stored messages for ``key`` (empty list if absent)."""

    @abstractmethod
    def put(self, key: str, messages: Sequence[Message]) -> None:
        """Replace the stored messages for ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the record for ``key``. Deleting a missing key is a no-op."""


class InMemoryHistoryStore(HistoryStore):
    """Dict-backed store. Useful for tests; data is lost on exit."""

    def __init__(self) -> None:
        self._records: Dict[str, List[Message]] = {}

    def get(self, key: str) -> List[Message]:
        return list(self._records.get(key, []))

    def put(self, key: str, messages: Sequence[Message]) -> None:
        self._records[key] = list(messages)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._records)


class DiskHistoryStore(HistoryStore):
    """JSON file per user key, written atomically.

    Layout:
        data_dir/
          <key>.json            # {"messages": [{role, content, timestamp}, ...]}
          <key>.corrupt.json    # unreadable record moved aside on load
    """

    def __init__(self, data_dir: str) -> None:
        self.root = Path(data_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> List[Message]:
        path = self._path(key)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as f:
                return _load(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            # Keep a backup and start fresh.
            bad = path.with_suffix(".corrupt.json")
            logger.warning("Unreadable history %s (%s); moving to %s", path.name, e, bad.name)
            try:
                os.replace(path, bad)
            except OSError as move_err:
                logger.error("Could not move corrupt history %s: %s", path, move_err)
            return []

    def put(self, key: str, messages: Sequence[Message]) -> None:
        _atomic_write_text(self._path(key), json.dumps(_dump(messages), ensure_ascii=False, indent=2))

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def list_keys(self) -> List[str]:
        """Return all keys with stored history."""
        return sorted(p.stem for p in self.root.glob("*.json") if not p.name.endswith(".corrupt.json"))


# -----------------------------
# Per-user view
# -----------------------------
class ConversationMemory:
    """Sliding-window history for a single user key.

    ``append`` loads the full record, adds the message, drops the oldest
    entries beyond ``max_messages`` and writes the full record back.
    """

    def __init__(self, store: HistoryStore, key: str, *, max_messages: int = MAX_MESSAGES) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.store = store
        self.key = key
        self.max_messages = max_messages

    def load(self) -> List[Message]:
        return self.store.get(self.key)

    def append(self, message: Message) -> List[Message]:
        history = append_message(self.load(), message, self.max_messages)
        self.store.put(self.key, history)
        return history

    def clear(self) -> None:
        self.store.delete(self.key)
