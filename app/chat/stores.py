"""
Conversation and message storage used by the chat core.

'ConversationStore' and 'MessageStore' are the pluggable backends the chat
router and the conversation endpoints depend on. Concrete implementations:

    'SqlConversationStore' / 'SqlMessageStore' - SQLAlchemy sessions; the
        blocking session work runs in the Starlette thread pool so the event
        loop is never blocked.
    'InMemoryConversationStore' / 'InMemoryMessageStore' - process-local
        dictionaries for development and tests.

All store methods are coroutines. Storage failures surface as
'PersistenceError'.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core import messages
from app.models.base import utcnow
from .errors import NotFoundError, PersistenceError
from .models import ChatMessage, Conversation


logger = logging.getLogger("app.chat.stores")


class ConversationStore(ABC):
    """Lookup and creation of buyer/seller conversations."""

    @abstractmethod
    async def get(self, conversation_id: int) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def get_or_create(
        self,
        product_id: int,
        buyer_id: int,
        seller_id: int,
    ) -> Tuple[Conversation, bool]:
        """Return the conversation for these participants and whether it was created."""

    @abstractmethod
    async def list_for_user(self, user_id: int) -> List[Conversation]:
        """Conversations where the user is buyer or seller, most recent activity first."""


class MessageStore(ABC):
    """Durable append and chronological read of chat messages."""

    @abstractmethod
    async def append(self, conversation_id: int, sender_id: int, content: str) -> ChatMessage:
        """Persist a message, assigning its id and timestamp."""

    @abstractmethod
    async def list_for_conversation(self, conversation_id: int) -> List[ChatMessage]:
        pass


def _activity_key(conversation: Conversation):
    return conversation.last_message_time or conversation.created_at


class SqlStore:
    """Runs session-scoped work in the thread pool and wraps database errors."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def _run(self, work, *args):
        def call():
            db = self.session_factory()
            try:
                return work(db, *args)
            except SQLAlchemyError:
                db.rollback()
                raise
            finally:
                db.close()

        try:
            return await run_in_threadpool(call)
        except SQLAlchemyError as e:
            logger.error("Database error in %s: %s", work.__name__, e, exc_info=True)
            raise PersistenceError()


class SqlConversationStore(SqlStore, ConversationStore):

    @staticmethod
    def _get(db: Session, conversation_id: int) -> Optional[Conversation]:
        return db.get(Conversation, conversation_id)

    @staticmethod
    def _find(db: Session, product_id: int, buyer_id: int, seller_id: int) -> Optional[Conversation]:
        return db.scalars(
            select(Conversation).where(
                Conversation.product_id == product_id,
                Conversation.buyer_id == buyer_id,
                Conversation.seller_id == seller_id,
            )
        ).first()

    @classmethod
    def _get_or_create(
        cls,
        db: Session,
        product_id: int,
        buyer_id: int,
        seller_id: int,
    ) -> Tuple[Conversation, bool]:
        existing = cls._find(db, product_id, buyer_id, seller_id)
        if existing:
            return existing, False

        conversation = Conversation(product_id=product_id, buyer_id=buyer_id, seller_id=seller_id)
        db.add(conversation)
        try:
            db.commit()
        except IntegrityError:
            # Opened concurrently by another request
            db.rollback()
            existing = cls._find(db, product_id, buyer_id, seller_id)
            if existing is None:
                raise PersistenceError(messages.CONVERSATION_CREATE_FAILED)
            return existing, False

        logger.info(
            "Conversation created: conversation_id=%s, product_id=%s, buyer_id=%s, seller_id=%s",
            conversation.id,
            product_id,
            buyer_id,
            seller_id,
        )
        return conversation, True

    @staticmethod
    def _list_for_user(db: Session, user_id: int) -> List[Conversation]:
        return list(
            db.scalars(
                select(Conversation)
                .where(or_(Conversation.buyer_id == user_id, Conversation.seller_id == user_id))
                .order_by(
                    func.coalesce(Conversation.last_message_time, Conversation.created_at).desc(),
                    Conversation.id.desc(),
                )
            )
        )

    async def get(self, conversation_id: int) -> Optional[Conversation]:
        return await self._run(self._get, conversation_id)

    async def get_or_create(self, product_id: int, buyer_id: int, seller_id: int) -> Tuple[Conversation, bool]:
        return await self._run(self._get_or_create, product_id, buyer_id, seller_id)

    async def list_for_user(self, user_id: int) -> List[Conversation]:
        return await self._run(self._list_for_user, user_id)


class SqlMessageStore(SqlStore, MessageStore):

    @staticmethod
    def _append(db: Session, conversation_id: int, sender_id: int, content: str) -> ChatMessage:
        conversation = db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError()

        now = utcnow()
        message = ChatMessage(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            created_at=now,
        )
        db.add(message)

        # Keep the conversation preview current
        conversation.last_message = content
        conversation.last_message_time = now

        db.commit()

        logger.info(
            "Message created: message_id=%s, conversation_id=%s, sender_id=%s",
            message.id,
            conversation_id,
            sender_id,
        )
        return message

    @staticmethod
    def _list_for_conversation(db: Session, conversation_id: int) -> List[ChatMessage]:
        return list(
            db.scalars(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conversation_id)
                .order_by(ChatMessage.created_at, ChatMessage.id)
            )
        )

    async def append(self, conversation_id: int, sender_id: int, content: str) -> ChatMessage:
        return await self._run(self._append, conversation_id, sender_id, content)

    async def list_for_conversation(self, conversation_id: int) -> List[ChatMessage]:
        return await self._run(self._list_for_conversation, conversation_id)


class InMemoryConversationStore(ConversationStore):

    def __init__(self):
        self.conversations: Dict[int, Conversation] = {}
        self._ids = itertools.count(1)

    def add(self, product_id: int, buyer_id: int, seller_id: int, conversation_id: Optional[int] = None) -> Conversation:
        """Insert a conversation directly, optionally with a fixed id."""
        if conversation_id is None:
            conversation_id = next(self._ids)
            while conversation_id in self.conversations:
                conversation_id = next(self._ids)
        conversation = Conversation(
            id=conversation_id,
            product_id=product_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            created_at=utcnow(),
        )
        self.conversations[conversation.id] = conversation
        return conversation

    async def get(self, conversation_id: int) -> Optional[Conversation]:
        return self.conversations.get(conversation_id)

    async def get_or_create(self, product_id: int, buyer_id: int, seller_id: int) -> Tuple[Conversation, bool]:
        for conversation in self.conversations.values():
            if (conversation.product_id, conversation.buyer_id, conversation.seller_id) == (
                product_id,
                buyer_id,
                seller_id,
            ):
                return conversation, False
        return self.add(product_id, buyer_id, seller_id), True

    async def list_for_user(self, user_id: int) -> List[Conversation]:
        owned = [c for c in self.conversations.values() if user_id in c.participants()]
        return sorted(owned, key=lambda c: (_activity_key(c), c.id), reverse=True)


class InMemoryMessageStore(MessageStore):

    def __init__(self, conversations: Optional[InMemoryConversationStore] = None):
        # Optional link used to keep the conversation preview current
        self.conversations = conversations
        self.messages: Dict[int, List[ChatMessage]] = {}
        self._ids = itertools.count(1)

    async def append(self, conversation_id: int, sender_id: int, content: str) -> ChatMessage:
        message = ChatMessage(
            id=next(self._ids),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            created_at=utcnow(),
        )
        self.messages.setdefault(conversation_id, []).append(message)

        if self.conversations is not None:
            conversation = self.conversations.conversations.get(conversation_id)
            if conversation is not None:
                conversation.last_message = content
                conversation.last_message_time = message.created_at
        return message

    async def list_for_conversation(self, conversation_id: int) -> List[ChatMessage]:
        return list(self.messages.get(conversation_id, []))
