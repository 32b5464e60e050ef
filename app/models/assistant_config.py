"""Assistant configuration - persona and toggles for automated replies."""

import uuid
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.account import Account


class CommunicationStyle(str, Enum):
    """Communication style enum (formal / neutral / casual)."""

    FORMAL = "formal"
    NORMAL = "normal"
    DESCONTRAIDA = "descontraida"


class AssistantConfig(Base, UUIDMixin, TimestampMixin):
    """Per-account AI assistant settings.

    Some accounts accumulate more than one row; the most recently updated one
    is authoritative.
    """

    __tablename__ = "assistant_configs"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Persona
    agent_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Assistente")
    behavior_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    communication_style: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CommunicationStyle.DESCONTRAIDA.value
    )

    # Business description
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Toggles
    use_emojis: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    restrict_topics: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sign_agent_name: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    split_long_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    disable_group_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_create_contacts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_typing_indicator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_recording_indicator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    response_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Voice replies
    voice_response_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    elevenlabs_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    elevenlabs_voice_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    account: Mapped["Account"] = relationship("Account", back_populates="assistant_configs")

    def __repr__(self) -> str:
        """String representation."""
        return f"<AssistantConfig(id={self.id}, agent='{self.agent_name}', active={self.is_active})>"
