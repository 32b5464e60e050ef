"""Contact model - per-contact automation state."""

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDMixin


class Contact(Base, UUIDMixin, TimestampMixin):
    """Automation flag and reconciliation id for one contact of an account.

    Once ``bot_disabled`` is set by a transfer request it stays set until an
    administrator clears it.
    """

    __tablename__ = "whatsapp_contacts"
    __table_args__ = (UniqueConstraint("account_id", "phone", name="uq_contact_account_phone"),)

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phone: Mapped[str] = mapped_column(String(100), nullable=False)
    lid: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    bot_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Contact(id={self.id}, phone='{self.phone}', bot_disabled={self.bot_disabled})>"
