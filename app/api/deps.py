"""Dependency injection for API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Account
from app.services import account as account_service
from app.services.whatsapp import ZapiClient, get_zapi_client
from app.utils.jwt import get_account_id_from_token

__all__ = [
    "get_db",
    "AsyncSession",
    "get_account_dependency",
    "require_account_access",
    "get_whatsapp_client",
]

# Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)


def get_whatsapp_client() -> ZapiClient:
    """Z-API client dependency (overridden in tests)."""
    return get_zapi_client()


# Account lookup dependency
async def get_account_dependency(
    account_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Account:
    """Get account by ID or raise 404."""
    account = await account_service.get_account(db, account_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account {account_id} not found",
        )
    return account


async def require_account_access(
    account_id: UUID,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Account:
    """Require valid JWT and ensure it matches the requested account_id."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_account_id = get_account_id_from_token(credentials.credentials)
    if token_account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if token_account_id != account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized for this account",
        )

    return await get_account_dependency(account_id, db)
