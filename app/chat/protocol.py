"""JSON wire protocol for the chat socket.

Inbound frames are decoded into one of a closed set of event kinds (``auth``,
``chat``), each with a fixed required-field shape. Anything else raises
``ProtocolError`` before it reaches the router.

Outbound frames::

    {"type": "message", "data": {...ChatMessage...}}
    {"type": "message_sent", "data": {...ChatMessage...}}
    {"type": "error", "message": "..."}
    {"type": "status", "status": "authenticated", "userId": 1}
"""

import json
from typing import Any, Dict

from pydantic import ValidationError

from app.core import messages
from .errors import ProtocolError
from .models import ChatMessage
from .schemas import AuthEvent, ChatEvent, ChatMessageOut, inbound_event_adapter


MESSAGE = "message"
MESSAGE_SENT = "message_sent"
ERROR = "error"
STATUS = "status"


def _describe(exc: ValidationError) -> str:
    details = []
    for error in exc.errors():
        if error["type"] in ("union_tag_invalid", "union_tag_not_found"):
            return messages.PROTOCOL_UNKNOWN_TYPE
        # First loc entry is the union tag
        field = ".".join(str(part) for part in error["loc"][1:])
        details.append(f"{field}: {error['msg']}" if field else error["msg"])
    return f"{messages.PROTOCOL_INVALID_FORMAT} ({'; '.join(details)})"


def decode_event(raw: str | bytes) -> AuthEvent | ChatEvent:
    """Decode one inbound frame into a typed event."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ProtocolError(messages.PROTOCOL_INVALID_JSON)

    if not isinstance(payload, dict):
        raise ProtocolError(messages.PROTOCOL_INVALID_FORMAT)

    try:
        return inbound_event_adapter.validate_python(payload)
    except ValidationError as e:
        raise ProtocolError(_describe(e))


def serialize_message(message: ChatMessage) -> Dict[str, Any]:
    return ChatMessageOut.model_validate(message).model_dump(by_alias=True, mode="json")


def message_event(message: ChatMessage) -> Dict[str, Any]:
    return {"type": MESSAGE, "data": serialize_message(message)}


def message_sent_event(message: ChatMessage) -> Dict[str, Any]:
    return {"type": MESSAGE_SENT, "data": serialize_message(message)}


def error_event(message: str) -> Dict[str, Any]:
    return {"type": ERROR, "message": message}


def authenticated_event(user_id: int) -> Dict[str, Any]:
    return {"type": STATUS, "status": "authenticated", "userId": user_id}
