"""AI responder - answers contact messages through the AI gateway.

Runs after an inbound message has been stored and no transfer was requested.
Checks that automation applies to this conversation, transcribes audio,
assembles the system prompt and history, calls the completion gateway and
relays the reply through WhatsApp as text chunks or as a voice message.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.client import AIGatewayClient, get_ai_client
from app.ai.prompts import build_assistant_system_prompt
from app.ai.speech import ElevenLabsClient
from app.config import get_settings
from app.errors import ConfigurationError, GatewayError, SpeechSynthesisError, TranscriptionError
from app.models import (
    AssistantConfig,
    AssistantIntent,
    Conversation,
    Message,
    MessageKind,
    TrainingDocument,
    TrainingDocumentStatus,
)
from app.services.contacts import get_or_create_contact, is_bot_disabled
from app.services.conversation_store import store_message
from app.services.reply_formatting import (
    clean_history_content,
    is_simple_acknowledgment,
    normalize_whitespace,
    remove_duplicate_paragraphs,
    split_message,
)
from app.services.whatsapp import ZapiClient, format_recipient

logger = logging.getLogger(__name__)
settings = get_settings()

TRANSCRIPTION_UNAVAILABLE = "[Áudio recebido - transcrição indisponível]"


class SkipReason:
    """Why the responder did not answer."""

    AI_INACTIVE = "ai_inactive"
    AI_DISABLED_FOR_CONVERSATION = "ai_disabled_for_conversation"
    BOT_DISABLED = "bot_disabled"
    GROUP_DISABLED = "group_disabled"
    COOLDOWN = "cooldown"
    SIMPLE_ACKNOWLEDGMENT = "simple_acknowledgment"
    ALREADY_RESPONDED = "already_responded"


@dataclass
class ResponderResult:
    """Outcome of one responder run."""

    status: str
    reason: str | None = None
    reply_type: str | None = None
    messages: list[Message] = field(default_factory=list)

    @property
    def messages_sent(self) -> int:
        return len(self.messages)

    @classmethod
    def skipped(cls, reason: str) -> "ResponderResult":
        logger.info(f"AI response skipped: {reason}")
        return cls(status="skipped", reason=reason)


def _as_aware(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AIResponder:
    """Generates and delivers automated replies for one account."""

    def __init__(
        self,
        db: AsyncSession,
        account_id: UUID,
        whatsapp: ZapiClient,
        ai_client: AIGatewayClient | None = None,
        speech_client: ElevenLabsClient | None = None,
    ):
        """Initialize the responder.

        Args:
            db: Database session
            account_id: Owning account
            whatsapp: Gateway client used for replies and presence
            ai_client: AI gateway client (uses singleton if not provided)
            speech_client: ElevenLabs client for voice replies
        """
        self.db = db
        self.account_id = account_id
        self.whatsapp = whatsapp
        self.ai_client = ai_client or get_ai_client()
        self.speech_client = speech_client or ElevenLabsClient()

    async def get_config(self) -> AssistantConfig | None:
        """Most recently updated assistant config of the account."""
        result = await self.db.execute(
            select(AssistantConfig)
            .where(AssistantConfig.account_id == self.account_id)
            .order_by(AssistantConfig.updated_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def respond(
        self,
        conversation: Conversation,
        message_text: str,
        is_audio: bool = False,
        audio_url: str | None = None,
        is_group: bool = False,
        current_message_id: UUID | None = None,
    ) -> ResponderResult:
        """Answer the contact's latest message if automation applies.

        Args:
            conversation: Conversation the message belongs to
            message_text: Inbound text (empty for audio)
            is_audio: True for audio and voice-note messages
            audio_url: Audio download URL, if any
            is_group: True if the message came from a group chat
            current_message_id: Stored id of the inbound message, excluded from history

        Returns:
            ResponderResult

        Raises:
            ConfigurationError: If the AI gateway key is missing
            CompletionError: If the completion call fails (including rate limit and quota)
        """
        config = await self.get_config()
        if config is None or not config.is_active:
            return ResponderResult.skipped(SkipReason.AI_INACTIVE)

        if conversation.ai_disabled:
            return ResponderResult.skipped(SkipReason.AI_DISABLED_FOR_CONVERSATION)

        if await is_bot_disabled(
            self.db, self.account_id, conversation.contact_phone, conversation.contact_lid
        ):
            return ResponderResult.skipped(SkipReason.BOT_DISABLED)

        if is_group and config.disable_group_messages:
            return ResponderResult.skipped(SkipReason.GROUP_DISABLED)

        if await self._in_cooldown(conversation.id):
            return ResponderResult.skipped(SkipReason.COOLDOWN)

        if not self.ai_client.is_configured:
            raise ConfigurationError("AI gateway API key not configured")

        content = message_text
        if is_audio:
            content = await self._transcribe(audio_url)

        recent = await self._recent_messages(conversation.id, current_message_id)

        if is_simple_acknowledgment(content) and self._last_outbound_was_not_ai(recent):
            return ResponderResult.skipped(SkipReason.SIMPLE_ACKNOWLEDGMENT)

        if await self._already_responded(conversation.id, current_message_id):
            return ResponderResult.skipped(SkipReason.ALREADY_RESPONDED)

        system_prompt = build_assistant_system_prompt(
            config,
            documents=await self._training_documents(),
            intents=await self._active_intents(),
            is_new_conversation=not recent,
        )
        history = self._build_history(recent)
        history.append({"role": "user", "content": content})

        recipient = format_recipient(
            conversation.contact_phone, conversation.contact_lid, settings.default_country_code
        )
        reply_with_audio = bool(
            is_audio
            and config.voice_response_enabled
            and config.elevenlabs_enabled
            and config.elevenlabs_voice_id
            and self.speech_client.is_configured
        )

        if reply_with_audio and config.show_recording_indicator:
            await self.whatsapp.send_presence(recipient, "recording")
        elif config.show_typing_indicator:
            await self.whatsapp.send_presence(recipient, "composing")

        if config.response_delay_seconds and config.response_delay_seconds > 0:
            logger.info(f"Waiting {config.response_delay_seconds}s before responding...")
            await asyncio.sleep(config.response_delay_seconds)

        reply = await self.ai_client.create_message(
            system_prompt=system_prompt,
            messages=history,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
        )
        reply = remove_duplicate_paragraphs(reply)
        logger.info(f"AI response for conversation {conversation.id}: {reply[:100]}...")

        result: ResponderResult | None = None
        if reply_with_audio:
            result = await self._send_audio_reply(conversation, recipient, reply, config)

        if result is None:
            if config.show_typing_indicator:
                await self.whatsapp.send_presence(recipient, "composing")
            result = await self._send_text_reply(conversation, recipient, reply, config)

        await self.whatsapp.send_presence(recipient, "paused")

        conversation.last_message_at = datetime.now(timezone.utc)
        if config.auto_create_contacts:
            _, created = await get_or_create_contact(
                self.db,
                self.account_id,
                conversation.contact_phone,
                opaque_id=conversation.contact_lid,
                name=conversation.contact_name,
            )
            if created:
                logger.info(f"Auto-created contact for {conversation.contact_phone}")
        await self.db.flush()

        return result

    async def _transcribe(self, audio_url: str | None) -> str:
        """Transcribe an audio message, substituting a placeholder on failure."""
        if not audio_url:
            return TRANSCRIPTION_UNAVAILABLE
        try:
            return await self.ai_client.transcribe_audio(audio_url)
        except (TranscriptionError, ConfigurationError) as e:
            logger.error(f"Transcription failed, using placeholder: {e}")
            return TRANSCRIPTION_UNAVAILABLE

    async def _in_cooldown(self, conversation_id: UUID) -> bool:
        result = await self.db.execute(
            select(Message.created_at)
            .where(
                Message.conversation_id == conversation_id,
                Message.is_ai_response.is_(True),
            )
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        last_ai_at = result.scalar_one_or_none()
        if last_ai_at is None:
            return False
        elapsed = (datetime.now(timezone.utc) - _as_aware(last_ai_at)).total_seconds()
        return elapsed < settings.ai_cooldown_seconds

    async def _recent_messages(
        self, conversation_id: UUID, exclude_id: UUID | None
    ) -> list[Message]:
        """Last ``history_limit`` messages, newest first."""
        query = select(Message).where(Message.conversation_id == conversation_id)
        if exclude_id is not None:
            query = query.where(Message.id != exclude_id)
        result = await self.db.execute(
            query.order_by(Message.created_at.desc()).limit(settings.history_limit)
        )
        return list(result.scalars().all())

    @staticmethod
    def _last_outbound_was_not_ai(recent: list[Message]) -> bool:
        """True if our latest message was a non-AI one (welcome, transfer confirmation)."""
        for message in recent:
            if not message.is_from_contact:
                return not message.is_ai_response
        return False

    async def _already_responded(
        self, conversation_id: UUID, current_message_id: UUID | None
    ) -> bool:
        """Something was sent after the current inbound message (a late redelivery)."""
        if current_message_id is None:
            return False
        current = await self.db.get(Message, current_message_id)
        if current is None:
            return False
        result = await self.db.execute(
            select(Message.id)
            .where(
                Message.conversation_id == conversation_id,
                Message.is_from_contact.is_(False),
                Message.created_at > current.created_at,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _build_history(recent: list[Message]) -> list[dict[str, str]]:
        """Convert stored messages (newest first) into chat turns, oldest first."""
        history = []
        for message in reversed(recent):
            content = clean_history_content(message.content)
            if not content:
                continue
            history.append(
                {"role": "user" if message.is_from_contact else "assistant", "content": content}
            )
        return history

    async def _training_documents(self) -> list[TrainingDocument]:
        result = await self.db.execute(
            select(TrainingDocument)
            .where(
                TrainingDocument.account_id == self.account_id,
                TrainingDocument.status == TrainingDocumentStatus.TRAINED.value,
            )
            .order_by(TrainingDocument.created_at.asc())
            .limit(10)
        )
        return list(result.scalars().all())

    async def _active_intents(self) -> list[AssistantIntent]:
        result = await self.db.execute(
            select(AssistantIntent).where(
                AssistantIntent.account_id == self.account_id,
                AssistantIntent.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def _send_audio_reply(
        self,
        conversation: Conversation,
        recipient: str,
        reply: str,
        config: AssistantConfig,
    ) -> ResponderResult | None:
        """Send the reply as a voice message. Returns None to fall back to text."""
        logger.info("Generating audio response with ElevenLabs...")
        try:
            await self.whatsapp.send_presence(recipient, "recording")
            audio = await self.speech_client.synthesize(reply, config.elevenlabs_voice_id)
            sent = await self.whatsapp.send_audio(recipient, audio)
        except (SpeechSynthesisError, GatewayError, ConfigurationError) as e:
            logger.error(f"Error sending audio, falling back to text: {e}")
            await self.whatsapp.send_presence(recipient, "paused")
            return None

        message = await store_message(
            self.db,
            conversation,
            content=reply,
            is_from_contact=False,
            is_ai_response=True,
            message_type=MessageKind.AUDIO.value,
            zapi_message_id=ZapiClient.extract_message_id(sent),
        )
        return ResponderResult(
            status="sent",
            reply_type="audio",
            messages=[message] if message else [],
        )

    async def _send_text_reply(
        self,
        conversation: Conversation,
        recipient: str,
        reply: str,
        config: AssistantConfig,
    ) -> ResponderResult:
        """Send the reply as one or more text messages."""
        if config.split_long_messages:
            chunks = split_message(reply, settings.split_threshold)
        else:
            chunks = [normalize_whitespace(reply)]

        logger.info(
            f"Sending {len(chunks)} text message(s) (total {len(reply)} chars), "
            f"split_long_messages={config.split_long_messages}"
        )

        stored: list[Message] = []
        for index, chunk in enumerate(chunks):
            if index > 0:
                await asyncio.sleep(settings.split_delay_seconds)
            sent = await self.whatsapp.send_text(recipient, chunk)
            message = await store_message(
                self.db,
                conversation,
                content=chunk,
                is_from_contact=False,
                is_ai_response=True,
                zapi_message_id=ZapiClient.extract_message_id(sent),
            )
            if message:
                stored.append(message)

        return ResponderResult(status="sent", reply_type="text", messages=stored)
