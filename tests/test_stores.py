"""
Tests for the SQLAlchemy and in-memory conversation/message stores.
"""

import pytest

from app.chat import (
    InMemoryConversationStore,
    InMemoryMessageStore,
    NotFoundError,
    PersistenceError,
    SqlConversationStore,
    SqlMessageStore,
)
from app.core import messages
from app.core.database import SessionLocal


@pytest.fixture
def sql_stores(db_tables):
    return SqlConversationStore(SessionLocal), SqlMessageStore(SessionLocal)


@pytest.mark.asyncio
async def test_get_or_create_returns_existing(sql_stores):
    conversations, _ = sql_stores

    created, was_created = await conversations.get_or_create(3, 1, 2)
    again, was_created_again = await conversations.get_or_create(3, 1, 2)

    assert was_created is True
    assert was_created_again is False
    assert again.id == created.id
    assert (again.buyer_id, again.seller_id, again.product_id) == (1, 2, 3)


@pytest.mark.asyncio
async def test_get_missing_conversation(sql_stores):
    conversations, _ = sql_stores
    assert await conversations.get(12345) is None


@pytest.mark.asyncio
async def test_append_assigns_identity_and_updates_preview(sql_stores):
    conversations, message_store = sql_stores
    conversation, _ = await conversations.get_or_create(3, 1, 2)

    message = await message_store.append(conversation.id, 1, "is this still available?")

    assert message.id is not None
    assert message.created_at is not None
    assert message.sender_id == 1

    refreshed = await conversations.get(conversation.id)
    assert refreshed.last_message == "is this still available?"
    assert refreshed.last_message_time is not None


@pytest.mark.asyncio
async def test_messages_listed_chronologically(sql_stores):
    conversations, message_store = sql_stores
    conversation, _ = await conversations.get_or_create(3, 1, 2)

    for sender, text in [(1, "hi"), (2, "hello"), (1, "price?")]:
        await message_store.append(conversation.id, sender, text)

    history = await message_store.list_for_conversation(conversation.id)

    assert [m.content for m in history] == ["hi", "hello", "price?"]
    assert [m.sender_id for m in history] == [1, 2, 1]


@pytest.mark.asyncio
async def test_append_to_missing_conversation(sql_stores):
    _, message_store = sql_stores
    with pytest.raises(NotFoundError):
        await message_store.append(999, 1, "hi")


@pytest.mark.asyncio
async def test_list_for_user_orders_by_activity(sql_stores):
    conversations, message_store = sql_stores
    older, _ = await conversations.get_or_create(3, 1, 2)
    newer, _ = await conversations.get_or_create(4, 5, 1)
    await conversations.get_or_create(6, 7, 8)

    await message_store.append(older.id, 2, "bump")

    listed = await conversations.list_for_user(1)

    assert [c.id for c in listed] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_database_errors_become_persistence_errors():
    def broken_session():
        from sqlalchemy.exc import OperationalError
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    store = SqlConversationStore(broken_session)
    with pytest.raises(PersistenceError):
        await store.get(1)


def test_get_or_create_race_with_vanished_row():
    from sqlalchemy.exc import IntegrityError

    class RacingSession:
        def add(self, instance):
            pass

        def commit(self):
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        def rollback(self):
            pass

        def scalars(self, statement):
            return self

        def first(self):
            return None

    with pytest.raises(PersistenceError) as exc:
        SqlConversationStore._get_or_create(RacingSession(), 3, 1, 2)
    assert exc.value.message == messages.CONVERSATION_CREATE_FAILED


@pytest.mark.asyncio
async def test_in_memory_stores():
    conversations = InMemoryConversationStore()
    message_store = InMemoryMessageStore(conversations)

    first, created = await conversations.get_or_create(3, 1, 2)
    second, _ = await conversations.get_or_create(4, 1, 9)
    same, created_again = await conversations.get_or_create(3, 1, 2)

    assert created and not created_again
    assert same is first

    await message_store.append(first.id, 2, "hey")
    await message_store.append(first.id, 1, "hi")

    assert [m.content for m in await message_store.list_for_conversation(first.id)] == ["hey", "hi"]
    assert await message_store.list_for_conversation(second.id) == []
    assert [c.id for c in await conversations.list_for_user(1)] == [first.id, second.id]
    assert await conversations.list_for_user(2) == [first]
