"""Conversation model - one WhatsApp thread with an external contact."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.account import Account
    from app.models.message import Message


class Conversation(Base, UUIDMixin, TimestampMixin):
    """A WhatsApp conversation thread.

    ``contact_key`` is the identifier the row was created under (the opaque
    linked id when one was known, else the phone) and is unique per account,
    so concurrent first messages from a new contact converge on one row.
    While the gateway reports only an opaque id, ``contact_phone`` holds that
    opaque id until a real number arrives.
    """

    __tablename__ = "whatsapp_conversations"
    __table_args__ = (
        UniqueConstraint("account_id", "contact_key", name="uq_conversation_account_contact_key"),
        Index("ix_conversation_account_phone", "account_id", "contact_phone"),
        Index("ix_conversation_account_lid", "account_id", "contact_lid"),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_key: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_lid: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_picture_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ai_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    account: Mapped["Account"] = relationship("Account", back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Conversation(id={self.id}, phone='{self.contact_phone}', "
            f"lid='{self.contact_lid}', unread={self.unread_count})>"
        )
