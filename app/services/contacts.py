"""Contact service - per-contact automation state."""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Contact

logger = logging.getLogger(__name__)


async def find_matching_contacts(
    db: AsyncSession, account_id: UUID, phone: str | None, opaque_id: str | None = None
) -> list[Contact]:
    """All contact rows for a phone or opaque id, oldest first.

    One person can own several rows when the provider reported them by phone
    and by opaque id before the two were linked.
    """
    conditions = []
    if phone:
        conditions.append(Contact.phone == phone)
    if opaque_id:
        conditions.append(Contact.lid == opaque_id)
        conditions.append(Contact.phone == opaque_id)
    if not conditions:
        return []

    result = await db.execute(
        select(Contact)
        .where(Contact.account_id == account_id, or_(*conditions))
        .order_by(Contact.created_at.asc())
    )
    return list(result.scalars().all())


async def find_contact(
    db: AsyncSession, account_id: UUID, phone: str | None, opaque_id: str | None = None
) -> Contact | None:
    """Get a contact by phone, or by opaque id when the phone doesn't match."""
    contacts = await find_matching_contacts(db, account_id, phone, opaque_id)
    if not contacts:
        return None
    # An exact phone match beats an opaque-id match
    for contact in contacts:
        if phone and contact.phone == phone:
            return contact
    return contacts[0]


async def get_or_create_contact(
    db: AsyncSession,
    account_id: UUID,
    phone: str,
    opaque_id: str | None = None,
    name: str | None = None,
) -> tuple[Contact, bool]:
    """Get or create the contact row for a phone.

    Returns:
        Tuple of (contact, created)
    """
    contact = await find_contact(db, account_id, phone, opaque_id)
    if contact:
        if opaque_id and not contact.lid:
            contact.lid = opaque_id
        return contact, False

    contact = Contact(
        account_id=account_id,
        phone=phone,
        lid=opaque_id,
        name=name,
        bot_disabled=False,
    )
    try:
        async with db.begin_nested():
            db.add(contact)
    except IntegrityError:
        existing = await find_contact(db, account_id, phone, opaque_id)
        if existing is None:
            raise
        return existing, False

    logger.info(f"Created contact {contact.id} for {phone}")
    return contact, True


async def is_bot_disabled(
    db: AsyncSession, account_id: UUID, phone: str | None, opaque_id: str | None = None
) -> bool:
    """Check if automated replies are disabled on any row of the contact."""
    contacts = await find_matching_contacts(db, account_id, phone, opaque_id)
    return any(contact.bot_disabled for contact in contacts)


async def set_bot_disabled(
    db: AsyncSession,
    account_id: UUID,
    phone: str,
    disabled: bool,
    opaque_id: str | None = None,
    name: str | None = None,
) -> Contact:
    """Set the automation-disabled flag, creating the contact if needed.

    Only an administrator re-enables automation; this flow never clears the
    flag on its own.
    """
    contact, _ = await get_or_create_contact(db, account_id, phone, opaque_id, name)
    for row in await find_matching_contacts(db, account_id, phone, opaque_id or contact.lid):
        row.bot_disabled = disabled
    await db.flush()
    logger.info(f"Automation {'disabled' if disabled else 'enabled'} for contact {phone}")
    return contact
