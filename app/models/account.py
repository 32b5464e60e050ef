"""Account model - the business account that owns a WhatsApp number."""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.assistant_config import AssistantConfig
    from app.models.conversation import Conversation


class Account(Base, UUIDMixin, TimestampMixin):
    """The business account receiving WhatsApp messages (e.g. a consultancy)."""

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Relationships
    assistant_configs: Mapped[list["AssistantConfig"]] = relationship(
        "AssistantConfig", back_populates="account", cascade="all, delete-orphan"
    )
    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Account(id={self.id}, name='{self.name}')>"
