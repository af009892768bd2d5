"""
HTTP and WebSocket round trips through the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.chat.router import CLOSE_SUPERSEDED
from app.core import messages
from main import create_app


WS_PATH = "/api/v1/ws"


@pytest.fixture
def client(chat_router):
    app = create_app(chat_router=chat_router)
    with TestClient(app) as test_client:
        yield test_client


def authenticate(ws, user_id):
    ws.send_json({"type": "auth", "userId": user_id})
    status = ws.receive_json()
    assert status == {"type": "status", "status": "authenticated", "userId": user_id}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["online_users"] == 0


def test_open_conversation_is_get_or_create(client):
    body = {"productId": 10, "buyerId": 4, "sellerId": 2}

    r = client.post("/api/v1/conversations", json=body)
    assert r.status_code == 201
    data = r.json()
    assert data["message"] == messages.CONVERSATION_CREATED
    conversation = data["conversation"]
    assert (conversation["productId"], conversation["buyerId"], conversation["sellerId"]) == (10, 4, 2)

    r = client.post("/api/v1/conversations", json=body)
    assert r.status_code == 200
    assert r.json()["message"] == messages.CONVERSATION_EXISTS
    assert r.json()["conversation"]["id"] == conversation["id"]


def test_open_conversation_with_self(client):
    r = client.post("/api/v1/conversations", json={"productId": 10, "buyerId": 2, "sellerId": 2})
    assert r.status_code == 400


def test_list_conversations(client):
    r = client.get("/api/v1/conversations", params={"userId": 2})
    assert r.status_code == 200
    assert [c["id"] for c in r.json()["conversations"]] == [7]

    r = client.get("/api/v1/conversations", params={"userId": 99})
    assert r.json()["conversations"] == []


def test_list_conversations_requires_user(client):
    assert client.get("/api/v1/conversations").status_code == 422
    assert client.get("/api/v1/conversations", params={"userId": "abc"}).status_code == 422


def test_post_and_read_messages(client):
    r = client.post("/api/v1/conversations/7/messages", json={"senderId": 1, "content": "hi"})
    assert r.status_code == 201
    assert r.json()["status"] == messages.MESSAGE_SENT
    assert r.json()["message"]["content"] == "hi"

    r = client.get("/api/v1/conversations/7/messages")
    assert r.status_code == 200
    history = r.json()["messages"]
    assert [(m["senderId"], m["content"]) for m in history] == [(1, "hi")]


def test_post_message_errors(client):
    r = client.post("/api/v1/conversations/999/messages", json={"senderId": 1, "content": "hi"})
    assert r.status_code == 404

    r = client.post("/api/v1/conversations/7/messages", json={"senderId": 5, "content": "hi"})
    assert r.status_code == 403

    r = client.post("/api/v1/conversations/7/messages", json={"senderId": 1, "content": "  "})
    assert r.status_code == 422


def test_get_messages_unknown_conversation(client):
    r = client.get("/api/v1/conversations/999/messages")
    assert r.status_code == 404
    assert r.json()["detail"] == messages.CONVERSATION_NOT_FOUND


def test_websocket_chat_between_buyer_and_seller(client):
    with client.websocket_connect(WS_PATH) as a, client.websocket_connect(WS_PATH) as b:
        authenticate(a, 1)
        authenticate(b, 2)
        assert client.get("/health").json()["online_users"] == 2

        a.send_json({"type": "chat", "conversationId": 7, "content": "hi"})

        ack = a.receive_json()
        delivered = b.receive_json()

    assert ack["type"] == "message_sent"
    assert delivered["type"] == "message"
    assert delivered["data"] == ack["data"]
    assert delivered["data"]["senderId"] == 1
    assert delivered["data"]["conversationId"] == 7
    assert delivered["data"]["content"] == "hi"


def test_websocket_offline_recipient(client):
    with client.websocket_connect(WS_PATH) as a:
        authenticate(a, 1)
        a.send_json({"type": "chat", "conversationId": 7, "content": "hi"})
        assert a.receive_json()["type"] == "message_sent"

    history = client.get("/api/v1/conversations/7/messages").json()["messages"]
    assert [m["content"] for m in history] == ["hi"]


def test_websocket_errors_keep_connection_open(client):
    with client.websocket_connect(WS_PATH) as a:
        a.send_json({"type": "chat", "conversationId": 7, "content": "hi"})
        assert a.receive_json() == {"type": "error", "message": messages.PROTOCOL_AUTH_REQUIRED}

        a.send_text("not json")
        assert a.receive_json()["message"] == messages.PROTOCOL_INVALID_JSON

        authenticate(a, 1)
        a.send_json({"type": "chat", "conversationId": 999, "content": "hi"})
        assert a.receive_json() == {"type": "error", "message": messages.CONVERSATION_NOT_FOUND}


def test_http_message_is_pushed_to_online_recipient(client):
    with client.websocket_connect(WS_PATH) as b:
        authenticate(b, 2)

        r = client.post("/api/v1/conversations/7/messages", json={"senderId": 1, "content": "via http"})
        assert r.status_code == 201

        pushed = b.receive_json()

    assert pushed["type"] == "message"
    assert pushed["data"]["content"] == "via http"


def test_duplicate_login_closes_older_socket(client):
    with client.websocket_connect(WS_PATH) as old:
        authenticate(old, 2)
        with client.websocket_connect(WS_PATH) as new:
            authenticate(new, 2)

            with pytest.raises(WebSocketDisconnect) as exc:
                old.receive_json()
            assert exc.value.code == CLOSE_SUPERSEDED

            r = client.post("/api/v1/conversations/7/messages", json={"senderId": 1, "content": "hi"})
            assert r.status_code == 201
            assert new.receive_json()["data"]["content"] == "hi"
