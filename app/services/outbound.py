"""Manual outbound messages sent by a person from the dashboard."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models import Account, Conversation, Message
from app.services.conversation_store import find_or_create_conversation, store_message
from app.services.identity import ResolvedIdentity, is_opaque_id
from app.services.whatsapp import ZapiClient, format_recipient

logger = logging.getLogger(__name__)
settings = get_settings()


async def send_manual_message(
    db: AsyncSession,
    account: Account,
    whatsapp: ZapiClient,
    content: str,
    conversation_id: UUID | None = None,
    phone: str | None = None,
    sent_by_name: str | None = None,
) -> Message:
    """Send a human-written message and store it as outbound.

    Args:
        db: Database session
        account: Sending account
        whatsapp: Gateway client
        content: Message text
        conversation_id: Existing conversation to reply in
        phone: Recipient phone (used when no conversation is given)
        sent_by_name: Name of the person sending

    Returns:
        The stored message

    Raises:
        ValueError: If neither a known conversation nor a phone is given
        GatewayError: If Z-API rejects the message
    """
    if not content or not content.strip():
        raise ValueError("Message content is required")

    conversation: Conversation | None = None
    if conversation_id:
        result = await db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.account_id == account.id,
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation is None and not phone:
            raise ValueError(f"Conversation {conversation_id} not found")

    if conversation is None:
        if not phone:
            raise ValueError("Phone number is required")
        identity = ResolvedIdentity(
            phone=phone,
            opaque_id=phone if is_opaque_id(phone) else None,
        )
        upsert = await find_or_create_conversation(db, account.id, identity, inbound=False)
        conversation = upsert.conversation

    recipient = format_recipient(
        conversation.contact_phone, conversation.contact_lid, settings.default_country_code
    )
    sent = await whatsapp.send_text(recipient, content)

    message = await store_message(
        db,
        conversation,
        content=content,
        is_from_contact=False,
        is_ai_response=False,
        zapi_message_id=ZapiClient.extract_message_id(sent),
        sent_by_name=sent_by_name,
    )
    conversation.last_message_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info(f"Manual message sent to {recipient} in conversation {conversation.id}")
    if message is None:
        # The send webhook raced us and stored the same provider id first
        result = await db.execute(
            select(Message).where(Message.zapi_message_id == ZapiClient.extract_message_id(sent))
        )
        message = result.scalar_one()
    return message
