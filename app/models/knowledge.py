"""Knowledge models - training documents and intent rules for the assistant."""

import uuid
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class TrainingDocumentStatus(str, Enum):
    """Training document status enum."""

    PENDING = "pending"
    TRAINED = "trained"
    FAILED = "failed"


class IntentActionType(str, Enum):
    """What the assistant does when an intent's trigger phrase appears."""

    LINK = "link"
    MESSAGE = "message"
    ACTION = "action"


class TrainingDocument(Base, UUIDMixin, TimestampMixin):
    """Reference text concatenated into the assistant's knowledge base."""

    __tablename__ = "training_documents"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TrainingDocumentStatus.PENDING.value
    )


class AssistantIntent(Base, UUIDMixin, TimestampMixin):
    """A "trigger phrase -> fixed action" rule rendered into the system prompt."""

    __tablename__ = "assistant_intents"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    intent_name: Mapped[str] = mapped_column(String(100), nullable=False)
    trigger_phrases: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    action_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IntentActionType.MESSAGE.value
    )
    action_value: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
