"""WhatsApp relay: per-user conversation actors in front of a chat model.

Typical usage
-------------
from whatsapp_agent import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

from .actor import ConversationActor
from .dispatcher import Dispatcher
from .errors import ProcessResult
from .memory import ConversationMemory, DiskHistoryStore, HistoryStore, InMemoryHistoryStore
from .models import MAX_MESSAGES, Message, Role, derive_user_key
from .server import create_app

__all__ = [
    "ConversationActor",
    "ConversationMemory",
    "DiskHistoryStore",
    "Dispatcher",
    "HistoryStore",
    "InMemoryHistoryStore",
    "MAX_MESSAGES",
    "Message",
    "ProcessResult",
    "Role",
    "create_app",
    "derive_user_key",
    "__version__",
    "get_version",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
