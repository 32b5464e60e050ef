"""WhatsApp webhook endpoints - receive events from Z-API."""

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_account_dependency, get_db, get_whatsapp_client
from app.config import get_settings
from app.models import Account
from app.services.webhook_handler import WebhookHandler
from app.services.whatsapp import ZapiClient

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)
settings = get_settings()


@router.get("/zapi/status", status_code=status.HTTP_200_OK)
async def webhook_status() -> dict[str, str]:
    """Health check endpoint for webhook configuration."""
    return {
        "status": "ok",
        "provider": "z-api",
        "instance": settings.zapi_instance_id or "not configured",
    }


@router.post("/zapi/{account_id}", status_code=status.HTTP_200_OK)
async def receive_zapi_webhook(
    account_id: UUID,
    request: Request,
    account: Annotated[Account, Depends(get_account_dependency)],
    db: Annotated[AsyncSession, Depends(get_db)],
    whatsapp: Annotated[ZapiClient, Depends(get_whatsapp_client)],
) -> Any:
    """Receive a Z-API webhook for one account.

    Z-API posts JSON for received messages, delivery receipts and other
    instance events. The account is routed by the URL, as registered through
    the webhook-setup endpoint.

    Returns:
        Handler result with HTTP 200, or ``{"error": ...}`` with HTTP 500
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Expected a JSON object"},
        )

    logger.info(
        f"📬 Z-API webhook for account {account_id}: "
        f"event={payload.get('event') or payload.get('type')} "
        f"messageId={payload.get('messageId')} fromMe={payload.get('fromMe')}"
    )

    try:
        handler = WebhookHandler(db=db, whatsapp=whatsapp)
        result = await handler.handle(account, payload)
        await db.commit()
        return result
    except Exception as e:
        logger.error(f"❌ Error processing Z-API webhook: {e}", exc_info=True)
        await db.rollback()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e)},
        )
