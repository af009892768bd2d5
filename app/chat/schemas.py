"""Pydantic schemas for chat wire events and conversation endpoints."""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from app.core import messages


class CamelModel(BaseModel):
    """Base schema exchanging camelCase keys with the web client."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _require_content(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(messages.MESSAGE_CONTENT_REQUIRED)
    return value


def _reject_non_integer(value):
    # JSON true and 1.0 would otherwise coerce to 1
    if isinstance(value, (bool, float)):
        raise ValueError("must be an integer")
    return value


RequiredContent = Annotated[str, AfterValidator(_require_content)]
Identifier = Annotated[int, BeforeValidator(_reject_non_integer)]


# Client -> server events

class AuthEvent(CamelModel):
    """Binds the connection to a user identity."""
    type: Literal["auth"]
    user_id: Identifier


class ChatEvent(CamelModel):
    """Chat message in an existing conversation."""
    type: Literal["chat"]
    conversation_id: Identifier
    content: RequiredContent


InboundEvent = Annotated[Union[AuthEvent, ChatEvent], Field(discriminator="type")]
inbound_event_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


# Server -> client payloads

class ChatMessageOut(CamelModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    created_at: datetime


class ConversationOut(CamelModel):
    id: int
    product_id: int
    buyer_id: int
    seller_id: int
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    created_at: Optional[datetime] = None


# REST bodies

class ConversationCreate(CamelModel):
    """Schema for opening a conversation about a product."""
    product_id: Identifier = Field(..., ge=1)
    buyer_id: Identifier
    seller_id: Identifier


class MessageCreate(CamelModel):
    """Schema for posting a message over HTTP."""
    sender_id: Identifier
    content: Annotated[RequiredContent, Field(max_length=5000)]

