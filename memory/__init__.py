"""Memory system for conversation persistence."""

from .models import ConversationRecord, Message, MessageRole, SessionMemory
from .storage import KeyValueStorage, InMemoryStorage, SQLiteStorage
from .conversation_store import ConversationStore, ConversationNotFoundError
from .context_manager import ContextWindowBuilder
from .session_memory import SessionMemoryManager

__all__ = [
    "ConversationRecord",
    "Message",
    "MessageRole",
    "SessionMemory",
    "KeyValueStorage",
    "InMemoryStorage",
    "SQLiteStorage",
    "ConversationStore",
    "ConversationNotFoundError",
    "ContextWindowBuilder",
    "SessionMemoryManager",
]
