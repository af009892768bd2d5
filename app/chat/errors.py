"""Chat error taxonomy.

Every error carries a user-facing message that is safe to send back to the
originating client in an ``error`` event.
"""

from app.core import messages


class ChatError(Exception):
    """Base class for errors reported to the sender of an event."""

    default_message = messages.ERROR_INTERNAL_SERVER

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ProtocolError(ChatError):
    """Malformed or out-of-sequence event."""

    default_message = messages.PROTOCOL_INVALID_FORMAT


class NotFoundError(ChatError):
    """Referenced conversation does not exist."""

    default_message = messages.CONVERSATION_NOT_FOUND


class PersistenceError(ChatError):
    """The backing store call failed."""

    default_message = messages.MESSAGE_SEND_FAILED
