"""Conversation store - find-or-create conversations and persist messages.

Conversations are merge-updated on every message with "only overwrite if
better" rules: a real name never gives way to an empty one or to a bare phone
number, and a real phone never gives way to an opaque id.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Conversation, Message, MessageKind, MessageStatus
from app.services.identity import ResolvedIdentity, is_opaque_id, looks_like_phone

logger = logging.getLogger(__name__)


@dataclass
class ConversationUpsert:
    """Outcome of find_or_create_conversation."""

    conversation: Conversation
    created: bool
    updated_fields: list[str] = field(default_factory=list)


async def find_conversation(
    db: AsyncSession,
    account_id: UUID,
    phone: str | None,
    opaque_id: str | None,
) -> Conversation | None:
    """Find the conversation for a contact, preferring the opaque id.

    Rows still in the transitional state store the opaque id in
    ``contact_phone``, so both columns are checked. With several matches
    the oldest conversation wins.

    Args:
        db: Database session
        account_id: Owning account
        phone: Resolved phone (may itself be an opaque id)
        opaque_id: Resolved opaque id

    Returns:
        Conversation or None
    """
    if opaque_id:
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.account_id == account_id,
                or_(
                    Conversation.contact_lid == opaque_id,
                    Conversation.contact_phone == opaque_id,
                ),
            )
            .order_by(Conversation.created_at.asc())
            .limit(1)
        )
        conversation = result.scalars().first()
        if conversation:
            return conversation

    if phone:
        result = await db.execute(
            select(Conversation)
            .where(
                Conversation.account_id == account_id,
                Conversation.contact_phone == phone,
            )
            .order_by(Conversation.created_at.asc())
            .limit(1)
        )
        return result.scalars().first()

    return None


def merge_identity(
    conversation: Conversation,
    identity: ResolvedIdentity,
    inbound: bool,
    now: datetime,
) -> list[str]:
    """Apply a new message's identity to an existing conversation.

    Args:
        conversation: Stored conversation (mutated in place)
        identity: Identity resolved from the new message
        inbound: True if the message came from the contact
        now: Message time

    Returns:
        Names of identity fields that changed
    """
    updated: list[str] = []

    conversation.last_message_at = now
    if inbound:
        conversation.unread_count = (conversation.unread_count or 0) + 1

    stored_name = (conversation.contact_name or "").strip()
    if identity.display_name and (not stored_name or looks_like_phone(stored_name)):
        logger.info(
            f"Updating contact name on conversation {conversation.id}: "
            f"'{conversation.contact_name}' -> '{identity.display_name}'"
        )
        conversation.contact_name = identity.display_name
        updated.append("contact_name")

    if identity.avatar_url and not conversation.profile_picture_url:
        conversation.profile_picture_url = identity.avatar_url
        updated.append("profile_picture_url")

    if identity.opaque_id and not conversation.contact_lid:
        conversation.contact_lid = identity.opaque_id
        updated.append("contact_lid")

    if identity.has_genuine_phone and is_opaque_id(conversation.contact_phone):
        logger.info(
            f"Replacing opaque id with phone on conversation {conversation.id}: "
            f"{conversation.contact_phone} -> {identity.phone}"
        )
        conversation.contact_phone = identity.phone
        updated.append("contact_phone")

    return updated


async def find_or_create_conversation(
    db: AsyncSession,
    account_id: UUID,
    identity: ResolvedIdentity,
    inbound: bool = True,
    now: datetime | None = None,
) -> ConversationUpsert:
    """Find the contact's conversation and merge-update it, or create one.

    The insert runs inside a SAVEPOINT. If a concurrent request created the
    same contact first, the unique ``(account_id, contact_key)`` constraint
    rejects ours and the winner's row is merge-updated instead.

    Args:
        db: Database session
        account_id: Owning account
        identity: Resolved identity (must have a phone or an opaque id)
        inbound: True if the message came from the contact
        now: Message time (defaults to now)

    Returns:
        ConversationUpsert with the conversation and whether it was created
    """
    if not identity.has_identity:
        raise ValueError("Cannot resolve a conversation without phone or opaque id")

    now = now or datetime.now(timezone.utc)

    conversation = await find_conversation(db, account_id, identity.phone, identity.opaque_id)
    if conversation:
        updated = merge_identity(conversation, identity, inbound, now)
        await db.flush()
        return ConversationUpsert(conversation=conversation, created=False, updated_fields=updated)

    contact_phone = identity.phone or identity.opaque_id
    conversation = Conversation(
        account_id=account_id,
        contact_key=identity.opaque_id or contact_phone,
        contact_phone=contact_phone,
        contact_lid=identity.opaque_id,
        contact_name=identity.display_name,
        profile_picture_url=identity.avatar_url,
        last_message_at=now,
        unread_count=1 if inbound else 0,
        ai_disabled=False,
    )

    try:
        async with db.begin_nested():
            db.add(conversation)
    except IntegrityError:
        logger.info(
            f"Conversation for {conversation.contact_key} created concurrently, merging instead"
        )
        existing = await find_conversation(db, account_id, identity.phone, identity.opaque_id)
        if existing is None:
            raise
        updated = merge_identity(existing, identity, inbound, now)
        await db.flush()
        return ConversationUpsert(conversation=existing, created=False, updated_fields=updated)

    logger.info(
        f"Created conversation {conversation.id} for {contact_phone} "
        f"(lid={identity.opaque_id}, name={identity.display_name})"
    )
    return ConversationUpsert(conversation=conversation, created=True)


async def message_exists(db: AsyncSession, zapi_message_id: str | None) -> bool:
    """Check if a provider message id was already stored (deduplication).

    Args:
        db: Database session
        zapi_message_id: Z-API message id

    Returns:
        True if message already exists in database
    """
    if not zapi_message_id:
        return False
    result = await db.execute(
        select(Message.id).where(Message.zapi_message_id == zapi_message_id)
    )
    return result.scalar_one_or_none() is not None


async def store_message(
    db: AsyncSession,
    conversation: Conversation,
    *,
    content: str,
    is_from_contact: bool,
    message_type: str = MessageKind.TEXT.value,
    is_ai_response: bool = False,
    zapi_message_id: str | None = None,
    status: str | None = None,
    audio_url: str | None = None,
    sent_by_name: str | None = None,
    created_at: datetime | None = None,
) -> Message | None:
    """Persist a message, discarding duplicates of a provider message id.

    Returns:
        The stored message, or None if the provider id was already stored
    """
    if status is None:
        status = (
            MessageStatus.DELIVERED.value if is_from_contact else MessageStatus.SENT.value
        )

    message = Message(
        conversation_id=conversation.id,
        account_id=conversation.account_id,
        is_from_contact=is_from_contact,
        is_ai_response=is_ai_response,
        message_type=message_type,
        content=content,
        audio_url=audio_url,
        status=status,
        zapi_message_id=zapi_message_id,
        sent_by_name=sent_by_name,
    )
    if created_at is not None:
        message.created_at = created_at

    try:
        async with db.begin_nested():
            db.add(message)
    except IntegrityError:
        logger.info(f"Duplicate message {zapi_message_id} discarded")
        return None

    return message


async def update_message_status(
    db: AsyncSession, zapi_message_ids: list[str], status: str
) -> int:
    """Apply a delivery-receipt status to stored messages.

    Returns:
        Number of messages updated
    """
    if not zapi_message_ids or not status:
        return 0

    result = await db.execute(
        select(Message).where(Message.zapi_message_id.in_(zapi_message_ids))
    )
    messages = result.scalars().all()
    for message in messages:
        message.status = status
    await db.flush()
    return len(messages)
