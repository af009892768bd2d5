"""Conversation endpoints: list, open, history and HTTP message posting."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.dependencies import get_chat_router, get_conversation_store, get_message_store
from app.chat import ChatRouter, ConversationStore, MessageStore, NotFoundError, PersistenceError, ProtocolError
from app.chat.protocol import serialize_message
from app.chat.schemas import ConversationCreate, ConversationOut, MessageCreate
from app.core import messages


logger = logging.getLogger("app.api.conversations")

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _conversation_json(conversation) -> dict:
    return ConversationOut.model_validate(conversation).model_dump(by_alias=True, mode="json")


@router.get("")
async def list_conversations(
    user_id: int = Query(..., alias="userId"),
    store: ConversationStore = Depends(get_conversation_store),
):
    """List conversations where the user is buyer or seller."""
    try:
        conversations = await store.list_for_user(user_id)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=messages.CONVERSATIONS_FETCH_FAILED,
        )
    return {"conversations": [_conversation_json(c) for c in conversations]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_conversation(
    payload: ConversationCreate,
    response: Response,
    store: ConversationStore = Depends(get_conversation_store),
):
    """Return the conversation for this product and pair of users, creating it if needed."""
    if payload.buyer_id == payload.seller_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=messages.CONVERSATION_SAME_PARTICIPANTS,
        )

    try:
        conversation, created = await store.get_or_create(
            payload.product_id,
            payload.buyer_id,
            payload.seller_id,
        )
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=messages.CONVERSATION_CREATE_FAILED,
        )

    if not created:
        response.status_code = status.HTTP_200_OK
        return {"conversation": _conversation_json(conversation), "message": messages.CONVERSATION_EXISTS}
    return {"conversation": _conversation_json(conversation), "message": messages.CONVERSATION_CREATED}


@router.get("/{conversation_id}/messages")
async def get_messages(
    conversation_id: int,
    conversations: ConversationStore = Depends(get_conversation_store),
    message_store: MessageStore = Depends(get_message_store),
):
    """Get the full message history of a conversation, oldest first."""
    try:
        conversation = await conversations.get(conversation_id)
        if not conversation:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=messages.CONVERSATION_NOT_FOUND,
            )
        history = await message_store.list_for_conversation(conversation_id)
    except PersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=messages.MESSAGES_FETCH_FAILED,
        )
    return {"messages": [serialize_message(m) for m in history]}


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: int,
    payload: MessageCreate,
    chat_router: ChatRouter = Depends(get_chat_router),
):
    """Send a message over HTTP; the other participant gets it live if online."""
    try:
        message = await chat_router.post_message(conversation_id, payload.sender_id, payload.content)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ProtocolError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return {"message": serialize_message(message), "status": messages.MESSAGE_SENT}
