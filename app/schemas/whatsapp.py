"""WhatsApp schemas for API requests and responses."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SendMessageRequest(BaseModel):
    """Schema for sending a manual WhatsApp message.

    Either conversation_id or phone is required.
    """

    content: str = Field(..., min_length=1, description="Message text")
    conversation_id: UUID | None = Field(None, description="Existing conversation to reply in")
    phone: str | None = Field(None, description="Recipient phone or opaque id")
    sent_by_name: str | None = Field(None, description="Name of the person sending")

    @model_validator(mode="after")
    def require_target(self) -> "SendMessageRequest":
        if not self.conversation_id and not self.phone:
            raise ValueError("conversation_id or phone is required")
        return self


class MessageResponse(BaseModel):
    """Schema for message API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    is_from_contact: bool
    is_ai_response: bool
    message_type: str
    content: str
    status: str
    zapi_message_id: str | None
    sent_by_name: str | None
    created_at: datetime


class SyncHistoryRequest(BaseModel):
    """Schema for a history sync request."""

    phone: str | None = Field(None, description="Only sync this contact")
    limit: int = Field(50, ge=1, le=500, description="Maximum chats when syncing all")
    run_async: bool = Field(False, description="Queue the sync as a background task")


class SyncHistoryResponse(BaseModel):
    """Schema for history sync results."""

    synced_messages: int = 0
    conversations_processed: int = 0
    errors: list[str] = Field(default_factory=list)
    task_id: str | None = None


class WebhookSetupRequest(BaseModel):
    """Schema for registering the Z-API webhooks."""

    webhook_url: str | None = Field(
        None, description="Public URL for Z-API callbacks (defaults to this service)"
    )


class WebhookSetupResponse(BaseModel):
    """Schema for webhook registration results."""

    webhook_url: str
    results: dict


class ContactAutomationUpdate(BaseModel):
    """Schema for enabling or disabling automated replies for a contact."""

    bot_disabled: bool


class ContactResponse(BaseModel):
    """Schema for contact API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    phone: str
    lid: str | None
    name: str | None
    bot_disabled: bool
    updated_at: datetime
