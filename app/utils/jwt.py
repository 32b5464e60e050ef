"""JWT utilities for authentication."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from pydantic import BaseModel

from app.config import get_settings


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # Subject - account_id
    exp: datetime  # Expiration time
    iat: datetime  # Issued at
    type: str = "access"  # Token type


def create_access_token(account_id: UUID) -> str:
    """Create a JWT access token for an account."""
    settings = get_settings()

    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)

    payload = {
        "sub": str(account_id),
        "exp": expires,
        "iat": now,
        "type": "access",
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT access token.

    Returns TokenPayload if valid, None if invalid or expired.
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload.get("type", "access"),
        )
    except jwt.ExpiredSignatureError:
        return None
    except (jwt.InvalidTokenError, KeyError):
        return None


def get_account_id_from_token(token: str) -> UUID | None:
    """Extract account ID from a JWT token.

    Returns UUID if valid, None if invalid or expired.
    """
    payload = decode_access_token(token)
    if payload is None or payload.type != "access":
        return None
    try:
        return UUID(payload.sub)
    except ValueError:
        return None
