"""Message model - represents individual messages in a conversation."""

import uuid
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.conversation import Conversation


class MessageKind(str, Enum):
    """Message kind enum."""

    TEXT = "text"
    AUDIO = "audio"
    PTT = "ptt"  # voice note
    IMAGE = "image"
    DOCUMENT = "document"


class MessageStatus(str, Enum):
    """Delivery status enum. Receipt callbacks may set other provider values."""

    SENT = "sent"
    DELIVERED = "delivered"
    RECEIVED = "received"
    READ = "read"
    FAILED = "failed"


class Message(Base, UUIDMixin, TimestampMixin):
    """Individual messages in a conversation."""

    __tablename__ = "whatsapp_messages"
    __table_args__ = (Index("ix_message_conversation_created", "conversation_id", "created_at"),)

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("whatsapp_conversations.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    is_from_contact: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_ai_response: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MessageKind.TEXT.value
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    audio_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=MessageStatus.SENT.value)

    zapi_message_id: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    sent_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")

    def __repr__(self) -> str:
        """String representation."""
        content_preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return (
            f"<Message(id={self.id}, from_contact={self.is_from_contact}, "
            f"type='{self.message_type}', content='{content_preview}')>"
        )
