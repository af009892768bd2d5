"""Chat models for buyer/seller conversations."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TimestampedModel


class Conversation(TimestampedModel):
    """Thread tying one buyer, one seller and one product together."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("product_id", "buyer_id", "seller_id", name="uq_conversations_participants"),
    )

    # Products and users live in the hosted marketplace schema; stored as plain references
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    buyer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    seller_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Denormalized preview for conversation lists
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def participants(self) -> tuple[int, int]:
        return self.buyer_id, self.seller_id

    def other_participant(self, user_id: int) -> int:
        """Return whichever participant is not ``user_id``."""
        return self.seller_id if self.buyer_id == user_id else self.buyer_id


class ChatMessage(TimestampedModel):
    """Individual message in a conversation. Immutable once created."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        CheckConstraint("length(content) > 0", name="ck_messages_content_not_empty"),
    )

    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
