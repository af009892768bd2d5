import os

# Must be set before app.core.config / app.core.database are imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"

import pytest
from starlette.websockets import WebSocketState

from app.chat import Connection, ChatRouter, InMemoryConversationStore, InMemoryMessageStore


class FakeWebSocket:
    """Records sent JSON frames and close calls."""

    def __init__(self, fail_sends: bool = False):
        self.sent = []
        self.closed = None
        self.accepted = False
        self.fail_sends = fail_sends
        self.application_state = WebSocketState.CONNECTING

    async def accept(self):
        self.accepted = True
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, data):
        if self.fail_sends or self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.application_state = WebSocketState.DISCONNECTED
        self.closed = (code, reason)

    def of_type(self, event_type: str):
        return [e for e in self.sent if e["type"] == event_type]


@pytest.fixture
def conversation_store():
    store = InMemoryConversationStore()
    store.add(product_id=3, buyer_id=1, seller_id=2, conversation_id=7)
    return store


@pytest.fixture
def message_store(conversation_store):
    return InMemoryMessageStore(conversation_store)


@pytest.fixture
def chat_router(conversation_store, message_store):
    return ChatRouter(conversation_store, message_store)


@pytest.fixture
def make_connection():
    def _make(fail_sends: bool = False) -> Connection:
        websocket = FakeWebSocket(fail_sends=fail_sends)
        websocket.application_state = WebSocketState.CONNECTED
        return Connection(websocket)
    return _make


@pytest.fixture
def db_tables():
    from app.core.database import engine
    from app.models import Base
    import app.chat.models  # noqa: F401

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
