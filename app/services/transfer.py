"""Transfer service - hands a conversation to a human when the contact asks for one.

When inbound text contains one of the trigger phrases, this service:
1. Disables automated replies for the contact
2. Sends a fixed confirmation through WhatsApp and stores it
3. Creates an in-app notification for the account owner

The caller must then skip the AI responder for that message.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ConfigurationError, GatewayError
from app.models import Conversation, Message, Notification, NotificationType
from app.services.contacts import set_bot_disabled
from app.services.conversation_store import store_message
from app.services.whatsapp import ZapiClient, format_recipient

logger = logging.getLogger(__name__)

TRANSFER_PHRASES: tuple[str, ...] = (
    "falar com rafael",
    "quero falar com rafael",
    "falar com o rafael",
    "falar com humano",
    "falar com atendente",
    "atendimento humano",
    "atendente humano",
)

NOTIFICATION_TITLE = "🔔 Transferência Solicitada!"


def detect_transfer_intent(text: str | None) -> bool:
    """Check whether the text asks to talk to a human (case-insensitive)."""
    if not text:
        return False
    lowered = text.lower()
    return any(phrase in lowered for phrase in TRANSFER_PHRASES)


def build_confirmation_message(contact_name: str | None) -> str:
    """Fixed acknowledgment sent to the contact after a transfer request."""
    return (
        f"✅ *Perfeito, {contact_name or 'amigo(a)'}!*\n\n"
        "O Rafael foi notificado e em breve vai falar diretamente com você.\n\n"
        "Aguarde só um instante que já retornamos! 🙏"
    )


@dataclass
class TransferOutcome:
    """Result of a transfer request."""

    confirmation: Message | None
    notification: Notification
    confirmation_sent: bool

    @property
    def short_circuit(self) -> bool:
        """The AI responder must not run for this message."""
        return True


async def handle_transfer_request(
    db: AsyncSession,
    account_id: UUID,
    conversation: Conversation,
    whatsapp: ZapiClient,
    contact_name: str | None = None,
    country_code: str = "55",
) -> TransferOutcome:
    """Disable automation for the contact, confirm, and notify the owner.

    A failed confirmation send is logged; the flag and notification are
    still written.

    Args:
        db: Database session
        account_id: Owning account
        conversation: The contact's conversation
        whatsapp: Gateway client
        contact_name: Resolved display name, if any
        country_code: Default country prefix for the recipient

    Returns:
        TransferOutcome
    """
    phone = conversation.contact_phone
    name = contact_name or conversation.contact_name
    logger.info(f"Human transfer requested by {phone} ({name})")

    await set_bot_disabled(
        db,
        account_id,
        phone,
        True,
        opaque_id=conversation.contact_lid,
        name=name,
    )

    confirmation_text = build_confirmation_message(name)
    confirmation: Message | None = None
    sent = False
    try:
        result = await whatsapp.send_text(
            format_recipient(phone, conversation.contact_lid, country_code),
            confirmation_text,
        )
        sent = True
        confirmation = await store_message(
            db,
            conversation,
            content=confirmation_text,
            is_from_contact=False,
            is_ai_response=False,
            zapi_message_id=ZapiClient.extract_message_id(result),
        )
    except (GatewayError, ConfigurationError) as e:
        logger.error(f"Transfer confirmation to {phone} not sent: {e}")

    notification = Notification(
        account_id=account_id,
        conversation_id=conversation.id,
        type=NotificationType.TRANSFER_REQUEST.value,
        title=NOTIFICATION_TITLE,
        message=(
            f"{name or phone} quer falar diretamente com você. "
            "A IA foi desativada para esta conversa."
        ),
        is_read=False,
    )
    db.add(notification)
    await db.flush()

    logger.info(f"Transfer notification {notification.id} created for account {account_id}")
    return TransferOutcome(confirmation=confirmation, notification=notification, confirmation_sent=sent)
