"""Tests for human-transfer detection and handling."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from app.errors import GatewayError
from app.models import Contact, Message, Notification, NotificationType
from app.services.transfer import (
    NOTIFICATION_TITLE,
    build_confirmation_message,
    detect_transfer_intent,
    handle_transfer_request,
)


class TestDetectTransferIntent:
    """Trigger phrase matching."""

    @pytest.mark.parametrize(
        "text",
        [
            "Falar com Rafael",
            "quero FALAR COM O RAFAEL agora",
            "Preciso de atendimento humano, por favor",
            "posso falar com atendente?",
        ],
    )
    def test_matches_case_insensitively(self, text):
        assert detect_transfer_intent(text) is True

    @pytest.mark.parametrize("text", ["Oi, tudo bem?", "Rafael é o dono?", "", None])
    def test_no_match(self, text):
        assert detect_transfer_intent(text) is False

    def test_confirmation_uses_name(self):
        assert "Maria" in build_confirmation_message("Maria")
        assert "amigo(a)" in build_confirmation_message(None)


class TestHandleTransferRequest:
    """Side effects of a transfer request."""

    async def test_disables_bot_confirms_and_notifies(self, db, account, conversation, mock_whatsapp_client):
        outcome = await handle_transfer_request(
            db, account.id, conversation, mock_whatsapp_client, contact_name="Maria"
        )

        assert outcome.short_circuit is True
        assert outcome.confirmation_sent is True

        contact = (await db.execute(select(Contact))).scalar_one()
        assert contact.phone == conversation.contact_phone
        assert contact.bot_disabled is True

        messages = (await db.execute(select(Message))).scalars().all()
        assert len(messages) == 1
        assert messages[0].is_from_contact is False
        assert messages[0].is_ai_response is False
        assert messages[0].zapi_message_id == "out_1"
        assert "Maria" in messages[0].content

        notification = (await db.execute(select(Notification))).scalar_one()
        assert notification.type == NotificationType.TRANSFER_REQUEST.value
        assert notification.title == NOTIFICATION_TITLE
        assert notification.conversation_id == conversation.id
        assert notification.is_read is False

        mock_whatsapp_client.send_text.assert_awaited_once()
        assert mock_whatsapp_client.send_text.call_args.args[0] == "5511987654321"

    async def test_send_failure_still_flags_and_notifies(self, db, account, conversation, mock_whatsapp_client):
        mock_whatsapp_client.send_text = AsyncMock(side_effect=GatewayError("down", status_code=503))

        outcome = await handle_transfer_request(db, account.id, conversation, mock_whatsapp_client)

        assert outcome.confirmation_sent is False
        assert outcome.confirmation is None
        contact = (await db.execute(select(Contact))).scalar_one()
        assert contact.bot_disabled is True
        assert (await db.execute(select(Notification))).scalar_one() is not None
        assert (await db.execute(select(Message))).scalars().all() == []

    async def test_existing_contact_is_reused(self, db, account, conversation, mock_whatsapp_client):
        db.add(Contact(account_id=account.id, phone=conversation.contact_phone, name="Maria"))
        await db.flush()

        await handle_transfer_request(db, account.id, conversation, mock_whatsapp_client)

        contacts = (await db.execute(select(Contact))).scalars().all()
        assert len(contacts) == 1
        assert contacts[0].bot_disabled is True
