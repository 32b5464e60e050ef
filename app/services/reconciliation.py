"""Reconciliation sweep - backfill opaque ids onto phone-only records.

Z-API may report a contact by phone number at first and later only by its
opaque linked id (or the other way round). Whenever a message carries both,
older conversations and contact rows that only know the phone get the opaque
id attached, so later messages land on the same records.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Contact, Conversation
from app.services.identity import is_opaque_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    """Rows touched by one sweep."""

    conversations_updated: int = 0
    contacts_updated: int = 0

    @property
    def total(self) -> int:
        return self.conversations_updated + self.contacts_updated


async def reconcile_opaque_identifier(
    db: AsyncSession,
    account_id: UUID,
    phone: str | None,
    opaque_id: str | None,
) -> ReconciliationResult:
    """Attach ``opaque_id`` to every record of the account that has ``phone`` but no opaque id.

    Idempotent: the ``IS NULL`` guard makes a second run with the same inputs
    a no-op.

    Args:
        db: Database session
        account_id: Owning account
        phone: Genuine phone number for the contact
        opaque_id: Opaque id known for the same contact

    Returns:
        ReconciliationResult with the number of rows updated
    """
    if not phone or not opaque_id or is_opaque_id(phone):
        return ReconciliationResult()

    conversations = await db.execute(
        update(Conversation)
        .where(
            Conversation.account_id == account_id,
            Conversation.contact_phone == phone,
            Conversation.contact_lid.is_(None),
        )
        .values(contact_lid=opaque_id)
        .execution_options(synchronize_session="evaluate")
    )
    contacts = await db.execute(
        update(Contact)
        .where(
            Contact.account_id == account_id,
            Contact.phone == phone,
            Contact.lid.is_(None),
        )
        .values(lid=opaque_id)
        .execution_options(synchronize_session="evaluate")
    )

    result = ReconciliationResult(
        conversations_updated=conversations.rowcount or 0,
        contacts_updated=contacts.rowcount or 0,
    )
    if result.total:
        logger.info(
            f"Reconciled {opaque_id} onto {result.conversations_updated} conversation(s) "
            f"and {result.contacts_updated} contact(s) with phone {phone}"
        )
    return result
