"""WebSocket endpoint for real-time chat."""

import logging

from fastapi import APIRouter, WebSocket

from app.chat import ChatRouter
from app.core.config import settings


logger = logging.getLogger("app.chat.websocket")

router = APIRouter()


@router.websocket(settings.CHAT_WS_PATH)
async def chat_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for real-time chat.

    Connection URL: ws://localhost:8000/api/v1/ws

    Message Format (Client → Server):
    {"type": "auth", "userId": 1}
    {"type": "chat", "conversationId": 7, "content": "hi"}

    Message Format (Server → Client):
    {
        "type": "message" | "message_sent" | "error" | "status",
        "data": {...ChatMessage...},
        "message": "error text"
    }
    """
    chat_router: ChatRouter = websocket.app.state.chat_router
    logger.debug("WebSocket opened from %s", websocket.client)
    await chat_router.serve(websocket)
