"""SQLAlchemy models for Zapdesk."""

from app.models.account import Account
from app.models.assistant_config import AssistantConfig, CommunicationStyle
from app.models.base import Base, TimestampMixin, UUIDMixin
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.knowledge import (
    AssistantIntent,
    IntentActionType,
    TrainingDocument,
    TrainingDocumentStatus,
)
from app.models.message import Message, MessageKind, MessageStatus
from app.models.notification import Notification, NotificationType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Models
    "Account",
    "AssistantConfig",
    "AssistantIntent",
    "TrainingDocument",
    "Conversation",
    "Message",
    "Contact",
    "Notification",
    # Enums
    "CommunicationStyle",
    "IntentActionType",
    "TrainingDocumentStatus",
    "MessageKind",
    "MessageStatus",
    "NotificationType",
]
