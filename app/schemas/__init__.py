"""Pydantic schemas for Zapdesk API."""

from app.schemas.whatsapp import (
    ContactAutomationUpdate,
    ContactResponse,
    MessageResponse,
    SendMessageRequest,
    SyncHistoryRequest,
    SyncHistoryResponse,
    WebhookSetupRequest,
    WebhookSetupResponse,
)

__all__ = [
    # Messages
    "SendMessageRequest",
    "MessageResponse",
    # History sync
    "SyncHistoryRequest",
    "SyncHistoryResponse",
    # Webhook setup
    "WebhookSetupRequest",
    "WebhookSetupResponse",
    # Contacts
    "ContactAutomationUpdate",
    "ContactResponse",
]
