"""Z-API webhook handler - routes gateway events for one account.

Flow for a received message:
identity -> conversation find/create (+ reconciliation sweep) -> message stored
-> transfer-intent check (short-circuits) -> AI responder.
Delivery receipts update the status of stored messages.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.client import AIGatewayClient
from app.ai.speech import ElevenLabsClient
from app.config import get_settings
from app.errors import ZapdeskError
from app.models import Account, MessageKind
from app.services.conversation_store import (
    find_or_create_conversation,
    message_exists,
    store_message,
    update_message_status,
)
from app.services.identity import resolve_identity
from app.services.reconciliation import reconcile_opaque_identifier
from app.services.responder import AIResponder
from app.services.transfer import detect_transfer_intent, handle_transfer_request
from app.services.whatsapp import ZapiClient

logger = logging.getLogger(__name__)
settings = get_settings()

RECEIVED_EVENT = "ReceivedCallback"
STATUS_EVENT = "MessageStatusCallback"


class WebhookStatus:
    """Values of the ``status`` field in handler results."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    PROCESSED = "processed"


@dataclass(frozen=True)
class InboundContent:
    """Message body fields extracted from a payload."""

    text: str
    message_type: str
    audio_url: str | None
    zapi_message_id: str | None
    is_group: bool
    from_me: bool

    @property
    def is_audio(self) -> bool:
        return self.message_type in (MessageKind.AUDIO.value, MessageKind.PTT.value)

    @property
    def stored_content(self) -> str:
        """Text persisted for the message (audio gets a placeholder)."""
        if self.is_audio:
            return f"[Áudio: {self.audio_url}]" if self.audio_url else "[Áudio recebido]"
        return self.text


def extract_message_id(payload: dict[str, Any]) -> str | None:
    """Provider message id from ``messageId`` or ``id.id``."""
    message_id = payload.get("messageId")
    if not message_id and isinstance(payload.get("id"), dict):
        message_id = payload["id"].get("id")
    return str(message_id) if message_id else None


def extract_content(payload: dict[str, Any]) -> InboundContent:
    """Pull text, audio and routing flags out of a received-message payload."""
    audio = payload.get("audio")
    ptt = payload.get("ptt")
    audio_data = audio if audio is not None else ptt
    is_audio = audio_data is not None

    audio_url = None
    if isinstance(audio_data, dict):
        audio_url = audio_data.get("audioUrl") or audio_data.get("pttUrl") or audio_data.get("url")
    elif isinstance(audio_data, str):
        audio_url = audio_data

    text_field = payload.get("text")
    text = ""
    if isinstance(text_field, dict):
        text = text_field.get("message") or ""
    text = text or payload.get("body") or ""
    if not text and isinstance(payload.get("message"), str):
        text = payload["message"]

    if is_audio:
        message_type = MessageKind.PTT.value if ptt is not None and audio is None else MessageKind.AUDIO.value
    else:
        message_type = MessageKind.TEXT.value

    chat_id = payload.get("chatId") or ""
    is_group = bool(payload.get("isGroup")) or (isinstance(chat_id, str) and "@g.us" in chat_id)

    return InboundContent(
        text=text.strip() if isinstance(text, str) else "",
        message_type=message_type,
        audio_url=audio_url or None,
        zapi_message_id=extract_message_id(payload),
        is_group=is_group,
        from_me=payload.get("fromMe") is True,
    )


class WebhookHandler:
    """Processes Z-API webhook payloads for an account."""

    def __init__(
        self,
        db: AsyncSession,
        whatsapp: ZapiClient,
        ai_client: AIGatewayClient | None = None,
        speech_client: ElevenLabsClient | None = None,
    ):
        """Initialize webhook handler.

        Args:
            db: Database session
            whatsapp: Gateway client for replies
            ai_client: AI gateway client (uses singleton if not provided)
            speech_client: ElevenLabs client for voice replies
        """
        self.db = db
        self.whatsapp = whatsapp
        self.ai_client = ai_client
        self.speech_client = speech_client

    async def handle(self, account: Account, payload: dict[str, Any]) -> dict[str, Any]:
        """Handle one webhook delivery.

        Args:
            account: Account the webhook URL belongs to
            payload: Raw JSON body

        Returns:
            Result dict with a ``status`` of success, skipped, duplicate or processed
        """
        event = payload.get("event") or payload.get("type")

        if event == RECEIVED_EVENT or payload.get("isNewsletter") is False:
            return await self.handle_received_message(account, payload)

        if event == STATUS_EVENT or payload.get("status"):
            return await self.handle_status_update(payload)

        logger.debug(f"Ignoring Z-API event {event}")
        return {"status": WebhookStatus.PROCESSED}

    async def handle_status_update(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a delivery receipt to the stored messages it names."""
        status = payload.get("status")
        ids = payload.get("ids")
        message_ids = [str(i) for i in ids] if isinstance(ids, list) else []
        single_id = extract_message_id(payload)
        if single_id:
            message_ids.append(single_id)

        updated = 0
        if isinstance(status, str) and status and message_ids:
            updated = await update_message_status(self.db, message_ids, status.lower())
            logger.info(f"Updated {updated} message(s) {message_ids} to status {status.lower()}")

        return {"status": WebhookStatus.PROCESSED, "updated": updated}

    async def handle_received_message(
        self, account: Account, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Store a received (or self-sent) message and react to it."""
        identity = resolve_identity(payload, settings.business_name_markers)
        content = extract_content(payload)

        if not identity.has_identity:
            logger.info("Missing phone and opaque id, skipping")
            return {"status": WebhookStatus.SKIPPED, "reason": "missing_identity"}

        if not content.text and not content.is_audio:
            logger.info("Missing content and not audio, skipping")
            return {"status": WebhookStatus.SKIPPED, "reason": "missing_content"}

        if await message_exists(self.db, content.zapi_message_id):
            logger.info(f"Duplicate message detected: {content.zapi_message_id}, skipping")
            return {"status": WebhookStatus.DUPLICATE}

        inbound = not content.from_me
        logger.info(
            f"Processing {content.message_type} message "
            f"{'from' if inbound else 'to'} {identity.phone or identity.opaque_id}: "
            f"{'[AUDIO]' if content.is_audio else content.text[:50]}"
        )

        upsert = await find_or_create_conversation(self.db, account.id, identity, inbound=inbound)
        conversation = upsert.conversation

        await reconcile_opaque_identifier(
            self.db,
            account.id,
            identity.phone if identity.has_genuine_phone else conversation.contact_phone,
            identity.opaque_id or conversation.contact_lid,
        )

        message = await store_message(
            self.db,
            conversation,
            content=content.stored_content,
            is_from_contact=inbound,
            message_type=content.message_type,
            zapi_message_id=content.zapi_message_id,
            audio_url=content.audio_url,
        )
        if message is None:
            return {"status": WebhookStatus.DUPLICATE}

        result: dict[str, Any] = {
            "status": WebhookStatus.SUCCESS,
            "conversation_id": str(conversation.id),
            "message_id": str(message.id),
        }

        if content.from_me:
            return result

        if detect_transfer_intent(content.text):
            await handle_transfer_request(
                self.db,
                account.id,
                conversation,
                self.whatsapp,
                contact_name=identity.display_name,
                country_code=settings.default_country_code,
            )
            result["transfer_requested"] = True
            return result

        responder = AIResponder(
            self.db,
            account.id,
            self.whatsapp,
            ai_client=self.ai_client,
            speech_client=self.speech_client,
        )
        try:
            outcome = await responder.respond(
                conversation,
                content.text,
                is_audio=content.is_audio,
                audio_url=content.audio_url,
                is_group=content.is_group,
                current_message_id=message.id,
            )
        except ZapdeskError as e:
            logger.error(f"AI response failed for conversation {conversation.id}: {e}")
            result["ai_response"] = {"status": "error", "error": str(e)}
            return result

        result["ai_response"] = {
            "status": outcome.status,
            "reason": outcome.reason,
            "type": outcome.reply_type,
            "messages_sent": outcome.messages_sent,
        }
        return result
