"""Identity resolution for inbound Z-API payloads.

Z-API reports a contact in several shapes depending on the event and on the
device: sometimes with a real phone number, sometimes only with an opaque
linked identifier (``...@lid``), and with the display name spread across
several fields. This module turns a raw payload into a ``ResolvedIdentity``
using ordered candidate tables, so the precedence rules stay explicit.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable

OPAQUE_ID_MARKER = "@lid"

_PHONE_PATTERN = re.compile(r"^\+?\d{8,15}$")
_PHONE_NOISE = re.compile(r"[\s\-()]")
_JID_SUFFIXES = ("@c.us", "@s.whatsapp.net")

# Candidate tables, highest priority first. Dotted paths walk nested objects.
PHONE_FIELDS: tuple[str, ...] = ("phone", "from", "participantPhone", "senderPhone")
OPAQUE_ID_FIELDS: tuple[str, ...] = ("chatLid", "contact.lid", "senderLid")
DISPLAY_NAME_FIELDS: tuple[str, ...] = (
    # name the contact chose for their own profile
    "pushName",
    "notifyName",
    # name saved in the business phone's address book
    "contactName",
    "contact.name",
    "senderName",
    "name",
)
AVATAR_FIELDS: tuple[str, ...] = ("photo", "profilePicUrl", "senderPhoto")


@dataclass(frozen=True)
class ResolvedIdentity:
    """Who sent (or received) a message, as far as the payload tells us."""

    phone: str | None = None
    opaque_id: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None

    @property
    def has_identity(self) -> bool:
        """True if the payload identifies a contact at all."""
        return bool(self.phone or self.opaque_id)

    @property
    def has_genuine_phone(self) -> bool:
        """True if ``phone`` is a real number rather than an opaque id."""
        return bool(self.phone) and not is_opaque_id(self.phone)


def is_opaque_id(value: str | None) -> bool:
    """Check whether a value is a provider-linked opaque identifier."""
    return bool(value) and OPAQUE_ID_MARKER in value


def looks_like_phone(value: str | None) -> bool:
    """Check whether a value is a bare phone number (8-15 digits, optional +)."""
    if not value:
        return False
    return bool(_PHONE_PATTERN.match(_PHONE_NOISE.sub("", value)))


def is_business_name(value: str | None, markers: Iterable[str]) -> bool:
    """Check whether a name contains one of the business's own name markers."""
    if not value:
        return False
    lowered = value.lower()
    return any(marker.lower() in lowered for marker in markers)


def is_valid_display_name(value: str | None, markers: Iterable[str]) -> bool:
    """A display name is usable if non-empty, not ours and not a phone number."""
    if not value or not value.strip():
        return False
    return not is_business_name(value, markers) and not looks_like_phone(value)


def _lookup(payload: dict[str, Any], path: str) -> Any:
    """Read a dotted path from a nested dict, returning None when absent."""
    current: Any = payload
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _string_field(payload: dict[str, Any], path: str) -> str | None:
    value = _lookup(payload, path)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _strip_jid(value: str) -> str:
    for suffix in _JID_SUFFIXES:
        value = value.replace(suffix, "")
    return value


def _resolve_phone(payload: dict[str, Any]) -> str | None:
    raw = _string_field(payload, "phone")
    for field in PHONE_FIELDS:
        candidate = _string_field(payload, field)
        if candidate is None:
            continue
        candidate = _strip_jid(candidate)
        if candidate and not is_opaque_id(candidate):
            return candidate
    # Nothing better: keep the raw value even if it is an opaque id
    return raw


def _resolve_opaque_id(payload: dict[str, Any], raw_phone: str | None) -> str | None:
    for field in OPAQUE_ID_FIELDS:
        candidate = _string_field(payload, field)
        if candidate:
            return candidate
    if is_opaque_id(raw_phone):
        return raw_phone
    return None


def resolve_identity(
    payload: dict[str, Any],
    business_name_markers: Iterable[str] = (),
) -> ResolvedIdentity:
    """Extract the contact identity from a raw webhook payload.

    Args:
        payload: Raw Z-API webhook body
        business_name_markers: Substrings identifying the business's own name,
            which must never be stored as the contact's name

    Returns:
        ResolvedIdentity with whatever could be determined
    """
    markers = tuple(business_name_markers)

    phone = _resolve_phone(payload)
    opaque_id = _resolve_opaque_id(payload, _string_field(payload, "phone"))

    display_name = None
    for field in DISPLAY_NAME_FIELDS:
        candidate = _string_field(payload, field)
        if is_valid_display_name(candidate, markers):
            display_name = candidate
            break

    avatar_url = None
    for field in AVATAR_FIELDS:
        candidate = _string_field(payload, field)
        if candidate:
            avatar_url = candidate
            break

    return ResolvedIdentity(
        phone=phone,
        opaque_id=opaque_id,
        display_name=display_name,
        avatar_url=avatar_url,
    )
