"""Tests for the AI responder."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from app.ai.prompts import NEW_CONVERSATION_RULE, ONGOING_CONVERSATION_RULE
from app.errors import (
    CompletionRateLimitError,
    ConfigurationError,
    SpeechSynthesisError,
    TranscriptionError,
)
from app.models import Contact, Message, MessageKind, TrainingDocument, TrainingDocumentStatus
from app.services.conversation_store import store_message
from app.services.responder import TRANSCRIPTION_UNAVAILABLE, AIResponder, SkipReason

pytestmark = pytest.mark.asyncio


async def inbound(db, conversation, text, created_at=None, **kwargs) -> Message:
    return await store_message(
        db, conversation, content=text, is_from_contact=True, created_at=created_at, **kwargs
    )


@pytest.fixture
def responder_factory(db, account, mock_whatsapp_client, mock_ai_client, mock_speech_client):
    def make() -> AIResponder:
        return AIResponder(
            db,
            account.id,
            mock_whatsapp_client,
            ai_client=mock_ai_client,
            speech_client=mock_speech_client,
        )

    return make


async def ai_messages(db) -> list[Message]:
    result = await db.execute(
        select(Message).where(Message.is_ai_response.is_(True)).order_by(Message.created_at)
    )
    return list(result.scalars().all())


class TestTextReply:
    """Happy path text replies."""

    async def test_first_message_gets_reply(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client, mock_whatsapp_client
    ):
        mock_ai_client.queue_response("Olá, Maria! Como posso ajudar?")
        current = await inbound(db, conversation, "Oi")

        result = await responder_factory().respond(conversation, "Oi", current_message_id=current.id)

        assert result.status == "sent"
        assert result.reply_type == "text"
        assert result.messages_sent == 1
        call = mock_ai_client.calls[0]
        assert call["messages"] == [{"role": "user", "content": "Oi"}]
        assert NEW_CONVERSATION_RULE in call["system_prompt"]
        mock_whatsapp_client.send_text.assert_awaited_once_with(
            "5511987654321", "Olá, Maria! Como posso ajudar?"
        )
        stored = await ai_messages(db)
        assert [m.content for m in stored] == ["Olá, Maria! Como posso ajudar?"]
        assert stored[0].is_from_contact is False
        assert stored[0].zapi_message_id == "out_1"

    async def test_history_in_chronological_order(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        base = datetime.now(timezone.utc) - timedelta(minutes=10)
        await inbound(db, conversation, "Oi", created_at=base)
        await store_message(
            db, conversation, content="Olá! Em que posso ajudar?", is_from_contact=False,
            created_at=base + timedelta(minutes=1),
        )
        current = await inbound(db, conversation, "Qual o preço?")

        await responder_factory().respond(conversation, "Qual o preço?", current_message_id=current.id)

        call = mock_ai_client.calls[0]
        assert call["messages"] == [
            {"role": "user", "content": "Oi"},
            {"role": "assistant", "content": "Olá! Em que posso ajudar?"},
            {"role": "user", "content": "Qual o preço?"},
        ]
        assert ONGOING_CONVERSATION_RULE in call["system_prompt"]

    async def test_trained_documents_in_prompt(
        self, db, account, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        db.add_all([
            TrainingDocument(
                account_id=account.id, title="Horário", content="9h às 18h",
                status=TrainingDocumentStatus.TRAINED.value,
            ),
            TrainingDocument(
                account_id=account.id, title="Rascunho", content="não usar",
                status=TrainingDocumentStatus.PENDING.value,
            ),
        ])
        await db.flush()
        current = await inbound(db, conversation, "Que horas abre?")

        await responder_factory().respond(conversation, "Que horas abre?", current_message_id=current.id)

        prompt = mock_ai_client.calls[0]["system_prompt"]
        assert "[Horário]\n9h às 18h" in prompt
        assert "Rascunho" not in prompt

    async def test_long_reply_is_split(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client, mock_whatsapp_client
    ):
        first = "Primeiro parágrafo. " + "a" * 600
        second = "Segundo parágrafo. " + "b" * 600
        mock_ai_client.queue_response(f"{first}\n\n{second}")
        current = await inbound(db, conversation, "Me explica tudo")

        result = await responder_factory().respond(conversation, "Me explica tudo", current_message_id=current.id)

        assert result.messages_sent == 2
        sent = [call.args[1] for call in mock_whatsapp_client.send_text.await_args_list]
        assert sent == [first, second]
        assert len(await ai_messages(db)) == 2

    async def test_split_disabled_sends_one_message(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client, mock_whatsapp_client
    ):
        assistant_config.split_long_messages = False
        mock_ai_client.queue_response("a" * 600 + "\n\n" + "b" * 600)
        current = await inbound(db, conversation, "Me explica tudo")

        result = await responder_factory().respond(conversation, "Me explica tudo", current_message_id=current.id)

        assert result.messages_sent == 1

    async def test_presence_indicators(
        self, db, assistant_config, conversation, responder_factory, mock_whatsapp_client
    ):
        assistant_config.show_typing_indicator = True
        current = await inbound(db, conversation, "Oi")

        await responder_factory().respond(conversation, "Oi", current_message_id=current.id)

        actions = [call.args[1] for call in mock_whatsapp_client.send_presence.await_args_list]
        assert actions[0] == "composing"
        assert actions[-1] == "paused"

    async def test_auto_create_contact(self, db, assistant_config, conversation, responder_factory):
        assistant_config.auto_create_contacts = True
        current = await inbound(db, conversation, "Oi")

        await responder_factory().respond(conversation, "Oi", current_message_id=current.id)

        contact = (await db.execute(select(Contact))).scalar_one()
        assert contact.phone == "5511987654321"
        assert contact.name == "Maria"
        assert contact.bot_disabled is False


class TestSkips:
    """Conditions under which no reply is sent."""

    async def test_no_config(self, db, conversation, responder_factory, mock_whatsapp_client):
        result = await responder_factory().respond(conversation, "Oi")

        assert result.status == "skipped"
        assert result.reason == SkipReason.AI_INACTIVE
        mock_whatsapp_client.send_text.assert_not_awaited()

    async def test_inactive_config(self, db, assistant_config, conversation, responder_factory):
        assistant_config.is_active = False

        result = await responder_factory().respond(conversation, "Oi")

        assert result.reason == SkipReason.AI_INACTIVE

    async def test_conversation_ai_disabled(self, db, assistant_config, conversation, responder_factory):
        conversation.ai_disabled = True

        result = await responder_factory().respond(conversation, "Oi")

        assert result.reason == SkipReason.AI_DISABLED_FOR_CONVERSATION

    async def test_contact_bot_disabled(self, db, account, assistant_config, conversation, responder_factory, mock_ai_client):
        db.add(Contact(account_id=account.id, phone=conversation.contact_phone, bot_disabled=True))
        await db.flush()

        result = await responder_factory().respond(conversation, "Oi")

        assert result.reason == SkipReason.BOT_DISABLED
        assert mock_ai_client.calls == []

    async def test_group_disabled(self, db, assistant_config, conversation, responder_factory):
        result = await responder_factory().respond(conversation, "Oi pessoal", is_group=True)

        assert result.reason == SkipReason.GROUP_DISABLED

    async def test_group_allowed(self, db, assistant_config, conversation, responder_factory):
        assistant_config.disable_group_messages = False
        current = await inbound(db, conversation, "Oi pessoal")

        result = await responder_factory().respond(
            conversation, "Oi pessoal", is_group=True, current_message_id=current.id
        )

        assert result.status == "sent"

    async def test_cooldown_after_recent_ai_reply(self, db, assistant_config, conversation, responder_factory):
        await store_message(
            db, conversation, content="Resposta anterior", is_from_contact=False, is_ai_response=True
        )

        result = await responder_factory().respond(conversation, "Oi de novo")

        assert result.reason == SkipReason.COOLDOWN

    async def test_acknowledgment_after_non_ai_message(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        base = datetime.now(timezone.utc) - timedelta(minutes=5)
        await store_message(
            db, conversation, content="✅ O Rafael foi notificado.", is_from_contact=False,
            created_at=base,
        )
        current = await inbound(db, conversation, "Obrigado!")

        result = await responder_factory().respond(conversation, "Obrigado!", current_message_id=current.id)

        assert result.reason == SkipReason.SIMPLE_ACKNOWLEDGMENT
        assert mock_ai_client.calls == []

    async def test_acknowledgment_after_ai_reply_is_answered(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        base = datetime.now(timezone.utc) - timedelta(minutes=5)
        await store_message(
            db, conversation, content="Posso ajudar em algo mais?", is_from_contact=False,
            is_ai_response=True, created_at=base,
        )
        current = await inbound(db, conversation, "Obrigado!")

        result = await responder_factory().respond(conversation, "Obrigado!", current_message_id=current.id)

        assert result.status == "sent"
        assert len(mock_ai_client.calls) == 1

    async def test_repeated_text_after_reply_is_answered(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        base = datetime.now(timezone.utc) - timedelta(minutes=5)
        await inbound(db, conversation, "Sim", created_at=base)
        await store_message(
            db, conversation, content="Quer que eu envie o catálogo?", is_from_contact=False,
            is_ai_response=True, created_at=base + timedelta(seconds=30),
        )
        current = await inbound(db, conversation, "Sim")

        result = await responder_factory().respond(conversation, "Sim", current_message_id=current.id)

        assert result.status == "sent"
        assert len(mock_ai_client.calls) == 1

    async def test_reply_already_sent_after_current_message(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        base = datetime.now(timezone.utc) - timedelta(minutes=5)
        current = await inbound(db, conversation, "Qual o horário?", created_at=base)
        await store_message(
            db, conversation, content="Das 9h às 18h.", is_from_contact=False,
            is_ai_response=True, created_at=base + timedelta(seconds=30),
        )

        result = await responder_factory().respond(
            conversation, "Qual o horário?", current_message_id=current.id
        )

        assert result.reason == SkipReason.ALREADY_RESPONDED
        assert mock_ai_client.calls == []


class TestFailures:
    """Configuration and external-service failures."""

    async def test_missing_ai_key(self, db, account, assistant_config, conversation, mock_whatsapp_client, mock_ai_client):
        mock_ai_client.is_configured = False
        responder = AIResponder(db, account.id, mock_whatsapp_client, ai_client=mock_ai_client)

        with pytest.raises(ConfigurationError):
            await responder.respond(conversation, "Oi")

        mock_whatsapp_client.send_text.assert_not_awaited()

    async def test_rate_limit_propagates_without_retry(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client, mock_whatsapp_client
    ):
        mock_ai_client.queue_error(CompletionRateLimitError("Rate limit exceeded", status_code=429))
        current = await inbound(db, conversation, "Oi")

        with pytest.raises(CompletionRateLimitError):
            await responder_factory().respond(conversation, "Oi", current_message_id=current.id)

        assert len(mock_ai_client.calls) == 1
        mock_whatsapp_client.send_text.assert_not_awaited()


class TestAudio:
    """Audio transcription and voice replies."""

    async def test_transcription_is_used_as_user_content(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        mock_ai_client.transcription = "Quanto custa a entrega?"
        current = await inbound(
            db, conversation, "[Áudio: https://cdn/a.ogg]", message_type=MessageKind.PTT.value
        )

        result = await responder_factory().respond(
            conversation, "", is_audio=True, audio_url="https://cdn/a.ogg", current_message_id=current.id
        )

        assert result.status == "sent"
        assert mock_ai_client.transcribed_urls == ["https://cdn/a.ogg"]
        assert mock_ai_client.calls[0]["messages"][-1] == {
            "role": "user", "content": "Quanto custa a entrega?"
        }

    async def test_transcription_failure_uses_placeholder(
        self, db, assistant_config, conversation, responder_factory, mock_ai_client
    ):
        mock_ai_client.transcription = TranscriptionError("Failed to download audio")
        current = await inbound(db, conversation, "[Áudio recebido]", message_type=MessageKind.AUDIO.value)

        result = await responder_factory().respond(
            conversation, "", is_audio=True, audio_url="https://cdn/a.ogg", current_message_id=current.id
        )

        assert result.status == "sent"
        assert mock_ai_client.calls[0]["messages"][-1]["content"] == TRANSCRIPTION_UNAVAILABLE

    async def test_voice_reply(
        self, db, assistant_config, conversation, responder_factory, mock_whatsapp_client, mock_speech_client
    ):
        assistant_config.voice_response_enabled = True
        assistant_config.elevenlabs_enabled = True
        assistant_config.elevenlabs_voice_id = "voice1"
        current = await inbound(db, conversation, "[Áudio recebido]", message_type=MessageKind.AUDIO.value)

        result = await responder_factory().respond(
            conversation, "", is_audio=True, audio_url="https://cdn/a.ogg", current_message_id=current.id
        )

        assert result.reply_type == "audio"
        mock_speech_client.synthesize.assert_awaited_once()
        assert mock_speech_client.synthesize.call_args.args[1] == "voice1"
        mock_whatsapp_client.send_audio.assert_awaited_once()
        mock_whatsapp_client.send_text.assert_not_awaited()
        stored = await ai_messages(db)
        assert stored[0].message_type == MessageKind.AUDIO.value

    async def test_voice_reply_falls_back_to_text(
        self, db, assistant_config, conversation, responder_factory, mock_whatsapp_client, mock_speech_client
    ):
        assistant_config.voice_response_enabled = True
        assistant_config.elevenlabs_enabled = True
        assistant_config.elevenlabs_voice_id = "voice1"
        mock_speech_client.synthesize = AsyncMock(side_effect=SpeechSynthesisError("quota", status_code=401))
        current = await inbound(db, conversation, "[Áudio recebido]", message_type=MessageKind.AUDIO.value)

        result = await responder_factory().respond(
            conversation, "", is_audio=True, audio_url="https://cdn/a.ogg", current_message_id=current.id
        )

        assert result.reply_type == "text"
        mock_whatsapp_client.send_audio.assert_not_awaited()
        mock_whatsapp_client.send_text.assert_awaited_once()

    async def test_text_message_never_gets_voice_reply(
        self, db, assistant_config, conversation, responder_factory, mock_whatsapp_client
    ):
        assistant_config.voice_response_enabled = True
        assistant_config.elevenlabs_enabled = True
        assistant_config.elevenlabs_voice_id = "voice1"
        current = await inbound(db, conversation, "Oi")

        result = await responder_factory().respond(conversation, "Oi", current_message_id=current.id)

        assert result.reply_type == "text"
        mock_whatsapp_client.send_audio.assert_not_awaited()
