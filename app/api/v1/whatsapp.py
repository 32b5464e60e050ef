"""WhatsApp management endpoints for an account."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_whatsapp_client, require_account_access
from app.config import get_settings
from app.errors import ConfigurationError, GatewayError
from app.models import Account, Contact, Message
from app.schemas.whatsapp import (
    ContactAutomationUpdate,
    ContactResponse,
    MessageResponse,
    SendMessageRequest,
    SyncHistoryRequest,
    SyncHistoryResponse,
    WebhookSetupRequest,
    WebhookSetupResponse,
)
from app.services.contacts import set_bot_disabled
from app.services.history_sync import sync_history
from app.services.outbound import send_manual_message
from app.services.whatsapp import ZapiClient

router = APIRouter(prefix="/accounts/{account_id}/whatsapp", tags=["whatsapp"])
logger = logging.getLogger(__name__)
settings = get_settings()


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a manual message",
)
async def send_message(
    request: SendMessageRequest,
    account: Annotated[Account, Depends(require_account_access)],
    db: Annotated[AsyncSession, Depends(get_db)],
    whatsapp: Annotated[ZapiClient, Depends(get_whatsapp_client)],
) -> Message:
    """Send a human-written message to a contact and store it."""
    try:
        message = await send_manual_message(
            db,
            account,
            whatsapp,
            content=request.content,
            conversation_id=request.conversation_id,
            phone=request.phone,
            sent_by_name=request.sent_by_name,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    await db.commit()
    return message


@router.post(
    "/sync",
    response_model=SyncHistoryResponse,
    summary="Import chat history from Z-API",
)
async def sync_whatsapp_history(
    request: SyncHistoryRequest,
    account: Annotated[Account, Depends(require_account_access)],
    db: Annotated[AsyncSession, Depends(get_db)],
    whatsapp: Annotated[ZapiClient, Depends(get_whatsapp_client)],
) -> SyncHistoryResponse:
    """Import past messages, inline or as a background task."""
    if request.run_async:
        from app.tasks.sync import sync_whatsapp_history as sync_task

        task = sync_task.delay(str(account.id), request.phone, request.limit)
        logger.info(f"Queued history sync {task.id} for account {account.id}")
        return SyncHistoryResponse(task_id=task.id)

    try:
        report = await sync_history(
            db,
            account,
            whatsapp,
            phone=request.phone,
            limit=request.limit,
            country_code=settings.default_country_code,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    await db.commit()
    return SyncHistoryResponse(**report.as_dict())


@router.post(
    "/webhook-setup",
    response_model=WebhookSetupResponse,
    summary="Register Z-API webhooks for this account",
)
async def setup_webhooks(
    request: WebhookSetupRequest,
    account: Annotated[Account, Depends(require_account_access)],
    whatsapp: Annotated[ZapiClient, Depends(get_whatsapp_client)],
) -> WebhookSetupResponse:
    """Point the instance's received, delivery and status callbacks at this service."""
    webhook_url = request.webhook_url or (
        f"{settings.app_base_url.rstrip('/')}/api/v1/webhooks/zapi/{account.id}"
    )
    try:
        results = await whatsapp.configure_webhooks(webhook_url)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Configured Z-API webhooks for account {account.id}: {webhook_url}")
    return WebhookSetupResponse(webhook_url=webhook_url, results=results)


@router.patch(
    "/contacts/{phone}/automation",
    response_model=ContactResponse,
    summary="Enable or disable automated replies for a contact",
)
async def update_contact_automation(
    phone: str,
    update: ContactAutomationUpdate,
    account: Annotated[Account, Depends(require_account_access)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Contact:
    """Administrator switch for the per-contact automation flag."""
    contact = await set_bot_disabled(db, account.id, phone, update.bot_disabled)
    await db.commit()
    return contact
