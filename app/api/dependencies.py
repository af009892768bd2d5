from __future__ import annotations

from fastapi import Request

from app.chat import ChatRouter, ConversationStore, MessageStore


def get_chat_router(request: Request) -> ChatRouter:
    """Chat router created by the application lifespan."""
    return request.app.state.chat_router


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.chat_router.conversations


def get_message_store(request: Request) -> MessageStore:
    return request.app.state.chat_router.messages
