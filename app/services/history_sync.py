"""History sync - imports past WhatsApp chats from Z-API.

Each chat is processed independently: a failure is recorded in the report and
the sync moves on, without undoing chats already imported.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Account, Conversation, Message, MessageKind
from app.services.conversation_store import find_conversation, store_message
from app.services.identity import is_opaque_id
from app.services.webhook_handler import extract_message_id
from app.services.whatsapp import ZapiClient

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Totals of one history sync run."""

    synced_messages: int = 0
    conversations_processed: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "synced_messages": self.synced_messages,
            "conversations_processed": self.conversations_processed,
            "errors": self.errors,
        }


def chat_phone(chat: dict[str, Any]) -> str | None:
    """Phone of a non-group chat from the chat list, else None."""
    if chat.get("isGroup"):
        return None
    raw = chat.get("phone") or chat.get("id") or ""
    if not isinstance(raw, str):
        raw = str(raw)
    phone = raw.replace("@c.us", "").replace("@s.whatsapp.net", "")
    if not phone or "@g.us" in phone or "-group" in phone:
        return None
    return phone


def normalize_sync_phone(phone: str, country_code: str = "55") -> str:
    """Digits with country prefix for short local numbers; opaque ids pass through."""
    if is_opaque_id(phone):
        return phone
    digits = re.sub(r"\D", "", phone)
    if not digits.startswith(country_code) and len(digits) <= 11:
        digits = f"{country_code}{digits}"
    return digits


def parse_timestamp(value: Any) -> datetime | None:
    """Z-API timestamps are seconds, milliseconds or ISO strings."""
    if isinstance(value, bool) or value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        seconds = value if value < 10_000_000_000 else value / 1000
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def history_message_content(msg: dict[str, Any]) -> tuple[str, str] | None:
    """Message type and stored content for a history entry, None if empty."""
    text_field = msg.get("text")
    text = text_field.get("message") if isinstance(text_field, dict) else None
    text = text or msg.get("body") or msg.get("caption") or ""
    if not text and isinstance(msg.get("message"), str):
        text = msg["message"]

    audio = msg.get("audio") or msg.get("ptt")
    if audio:
        url = None
        if isinstance(audio, dict):
            url = audio.get("audioUrl") or audio.get("pttUrl") or audio.get("url")
        elif isinstance(audio, str):
            url = audio
        return MessageKind.AUDIO.value, f"[Áudio: {url}]" if url else "[Áudio]"

    image = msg.get("image")
    if image:
        image = image if isinstance(image, dict) else {}
        url = image.get("imageUrl") or image.get("url")
        if url:
            return MessageKind.IMAGE.value, f"[Imagem: {url}]"
        return MessageKind.IMAGE.value, f"[Imagem] {image.get('caption') or ''}".strip()

    document = msg.get("document")
    if document:
        name = document.get("fileName") if isinstance(document, dict) else None
        return MessageKind.DOCUMENT.value, f"[Documento: {name or 'arquivo'}]"

    if not text:
        return None
    return MessageKind.TEXT.value, text


async def _sync_chat(
    db: AsyncSession,
    account: Account,
    client: ZapiClient,
    phone: str,
    report: SyncReport,
) -> None:
    messages = await client.get_chat_messages(phone)
    if not messages:
        logger.info(f"No messages found for {phone}")
        return

    first = messages[0]
    contact_name = first.get("senderName") or first.get("pushName") or first.get("notifyName")
    photo = first.get("photo") or first.get("profilePicUrl")

    opaque_id = phone if is_opaque_id(phone) else None
    conversation = await find_conversation(db, account.id, phone, opaque_id)
    if conversation is None:
        conversation = Conversation(
            account_id=account.id,
            contact_key=phone,
            contact_phone=phone,
            contact_lid=opaque_id,
            contact_name=contact_name,
            profile_picture_url=photo,
            last_message_at=datetime.now(timezone.utc),
            unread_count=0,
        )
        db.add(conversation)
        await db.flush()
    elif contact_name and not conversation.contact_name:
        conversation.contact_name = contact_name
        if photo and not conversation.profile_picture_url:
            conversation.profile_picture_url = photo

    result = await db.execute(
        select(Message.zapi_message_id).where(
            Message.conversation_id == conversation.id,
            Message.zapi_message_id.is_not(None),
        )
    )
    existing_ids = set(result.scalars().all())

    inserted = 0
    newest: datetime | None = None
    for msg in messages:
        message_id = extract_message_id(msg) or (
            str(msg["id"]) if isinstance(msg.get("id"), (str, int)) else None
        )
        if not message_id or message_id in existing_ids:
            continue
        parsed = history_message_content(msg)
        if parsed is None:
            continue
        message_type, content = parsed
        from_me = msg.get("fromMe") is True
        created_at = (
            parse_timestamp(msg.get("momment") or msg.get("timestamp"))
            or datetime.now(timezone.utc)
        )

        stored = await store_message(
            db,
            conversation,
            content=content,
            is_from_contact=not from_me,
            message_type=message_type,
            zapi_message_id=message_id,
            created_at=created_at,
        )
        if stored is None:
            continue
        existing_ids.add(message_id)
        inserted += 1
        if newest is None or created_at > newest:
            newest = created_at

    if newest is not None:
        conversation.last_message_at = newest
    await db.flush()

    report.synced_messages += inserted
    report.conversations_processed += 1
    logger.info(f"Synced {inserted} new messages for {phone}")


async def sync_history(
    db: AsyncSession,
    account: Account,
    client: ZapiClient,
    phone: str | None = None,
    limit: int = 50,
    country_code: str = "55",
) -> SyncReport:
    """Import chat history for one phone, or for the most recent chats.

    Args:
        db: Database session
        account: Account to import into
        client: Gateway client
        phone: Only sync this contact
        limit: Maximum number of chats when syncing all
        country_code: Default country prefix

    Returns:
        SyncReport with totals and per-chat errors

    Raises:
        GatewayError: If the chat list itself cannot be fetched
    """
    report = SyncReport()

    if phone:
        phones = [phone]
    else:
        chats = await client.list_chats()
        logger.info(f"Found {len(chats)} chats")
        phones = [p for p in (chat_phone(chat) for chat in chats[:limit]) if p]

    logger.info(f"Will sync {len(phones)} conversations for account {account.id}")

    for target in phones:
        formatted = normalize_sync_phone(target, country_code)
        try:
            async with db.begin_nested():
                await _sync_chat(db, account, client, formatted, report)
        except Exception as e:
            logger.error(f"Error syncing {target}: {e}")
            report.errors.append(f"{target}: {e}")

    return report
