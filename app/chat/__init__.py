"""Real-time buyer/seller chat."""

from .connection import Connection, ConnectionState
from .errors import ChatError, NotFoundError, PersistenceError, ProtocolError
from .models import ChatMessage, Conversation
from .registry import ConnectionRegistry
from .router import ChatRouter
from .stores import (
    ConversationStore,
    InMemoryConversationStore,
    InMemoryMessageStore,
    MessageStore,
    SqlConversationStore,
    SqlMessageStore,
)

__all__ = [
    "ChatError",
    "ChatMessage",
    "ChatRouter",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "Conversation",
    "ConversationStore",
    "InMemoryConversationStore",
    "InMemoryMessageStore",
    "MessageStore",
    "NotFoundError",
    "PersistenceError",
    "ProtocolError",
    "SqlConversationStore",
    "SqlMessageStore",
]
