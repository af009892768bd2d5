"""Routes chat events between the two participants of a conversation."""

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from app.core import messages
from .connection import Connection, ConnectionState
from .errors import ChatError, NotFoundError, PersistenceError, ProtocolError
from .models import ChatMessage, Conversation
from .protocol import (
    authenticated_event,
    decode_event,
    error_event,
    message_event,
    message_sent_event,
)
from .registry import ConnectionRegistry
from .schemas import AuthEvent, ChatEvent
from .stores import ConversationStore, MessageStore


logger = logging.getLogger("app.chat.router")

# Application-defined close code for a socket replaced by a newer login
CLOSE_SUPERSEDED = 4000


class _ConversationLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class ChatRouter:
    """
    Owns the connection registry and relays messages between participants.

    Each connection starts pending and must send ``auth`` before ``chat``.
    A chat message is validated against its conversation, persisted, pushed
    to the other participant if online, and acknowledged to the sender.
    Persistence and delivery are serialized per conversation so messages
    reach the recipient in the order they were stored.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        messages_store: MessageStore,
        registry: Optional[ConnectionRegistry] = None,
        close_superseded: bool = True,
    ):
        self.conversations = conversations
        self.messages = messages_store
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.close_superseded = close_superseded
        self._locks: Dict[int, _ConversationLock] = {}

    async def serve(self, websocket: WebSocket) -> None:
        """Accept a socket and process its events until it closes."""
        await websocket.accept()
        connection = Connection(websocket)

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                await self.handle_frame(connection, raw)
        except WebSocketDisconnect as e:
            logger.info("WebSocket disconnected: user_id=%s, code=%s", connection.identity, e.code)
        except RuntimeError as e:
            # Socket closed underneath us (e.g. superseded by a newer login)
            logger.info("WebSocket transport closed: user_id=%s, reason=%s", connection.identity, e)
        finally:
            self.disconnect(connection)

    async def handle_frame(self, connection: Connection, raw: str | bytes) -> None:
        """Decode and dispatch one frame; errors are reported to the sender only."""
        try:
            event = decode_event(raw)
            if isinstance(event, AuthEvent):
                await self.handle_auth(connection, event)
            else:
                await self.handle_chat(connection, event)
        except ChatError as e:
            logger.info("Chat event rejected: user_id=%s, error=%s", connection.identity, e.message)
            await connection.send_event(error_event(e.message))
        except Exception as e:
            logger.error("Unexpected chat error for user %s: %s", connection.identity, e, exc_info=True)
            await connection.send_event(error_event(messages.ERROR_INTERNAL_SERVER))

    async def handle_auth(self, connection: Connection, event: AuthEvent) -> None:
        if connection.state is not ConnectionState.PENDING:
            raise ProtocolError(messages.PROTOCOL_ALREADY_AUTHENTICATED)

        connection.authenticate(event.user_id)
        previous = self.registry.register(event.user_id, connection)
        logger.info("User %s connected", event.user_id)

        await connection.send_event(authenticated_event(event.user_id))

        if previous is not None and self.close_superseded:
            await previous.close(code=CLOSE_SUPERSEDED, reason=messages.CONNECTION_SUPERSEDED)

    async def handle_chat(self, connection: Connection, event: ChatEvent) -> None:
        if not connection.is_authenticated:
            raise ProtocolError(messages.PROTOCOL_AUTH_REQUIRED)

        await self.post_message(
            event.conversation_id,
            connection.identity,
            event.content,
            origin=connection,
        )

    async def post_message(
        self,
        conversation_id: int,
        sender_id: int,
        content: str,
        origin: Optional[Connection] = None,
    ) -> ChatMessage:
        """
        Persist a message and deliver it.

        The recipient gets a ``message`` event if online; ``origin`` (the
        sender's socket, if the message came over one) gets ``message_sent``.

        Raises:
            NotFoundError: conversation does not exist
            ProtocolError: sender is not a participant
            PersistenceError: the store failed
        """
        async with self._conversation_lock(conversation_id):
            conversation = await self._resolve(conversation_id, sender_id)
            message = await self._append(conversation_id, sender_id, content)
            await self._deliver(message, conversation.other_participant(sender_id), origin)
        return message

    def disconnect(self, connection: Connection) -> None:
        """Mark the connection closed and drop it from the registry. Idempotent."""
        connection.mark_closed()
        self.registry.unregister(connection.identity, connection)

    async def shutdown(self) -> None:
        await self.registry.close_all()

    @contextlib.asynccontextmanager
    async def _conversation_lock(self, conversation_id: int) -> AsyncIterator[None]:
        entry = self._locks.get(conversation_id)
        if entry is None:
            entry = self._locks[conversation_id] = _ConversationLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if not entry.holders:
                del self._locks[conversation_id]

    async def _resolve(self, conversation_id: int, sender_id: int) -> Conversation:
        try:
            conversation = await self.conversations.get(conversation_id)
        except ChatError:
            raise
        except Exception as e:
            logger.error("Conversation lookup failed for %s: %s", conversation_id, e, exc_info=True)
            raise PersistenceError()

        if conversation is None:
            raise NotFoundError()
        if sender_id not in conversation.participants():
            raise ProtocolError(messages.CONVERSATION_NOT_PARTICIPANT)
        return conversation

    async def _append(self, conversation_id: int, sender_id: int, content: str) -> ChatMessage:
        try:
            return await self.messages.append(conversation_id, sender_id, content)
        except ChatError:
            raise
        except Exception as e:
            logger.error("Message append failed for conversation %s: %s", conversation_id, e, exc_info=True)
            raise PersistenceError()

    async def _deliver(
        self,
        message: ChatMessage,
        recipient_id: int,
        origin: Optional[Connection],
    ) -> None:
        delivered = False
        recipient = self.registry.lookup(recipient_id)
        if recipient is not None and recipient is not origin:
            delivered = await recipient.send_event(message_event(message))
            if not delivered:
                self.registry.unregister(recipient_id, recipient)
                await recipient.close()

        if origin is not None:
            if origin.is_closed:
                logger.info(
                    "Sender %s closed before acknowledgment of message %s",
                    message.sender_id,
                    message.id,
                )
            else:
                await origin.send_event(message_sent_event(message))

        logger.info(
            "Message routed: message_id=%s, conversation_id=%s, recipient_id=%s, delivered=%s",
            message.id,
            message.conversation_id,
            recipient_id,
            delivered,
        )
