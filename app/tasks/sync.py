"""WhatsApp history sync task."""

import logging

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.sync.sync_whatsapp_history")
def sync_whatsapp_history(account_id: str, phone: str | None = None, limit: int = 50) -> dict:
    """
    Import past Z-API chats into an account's conversations.

    Args:
        account_id: Account to import into
        phone: Only sync this contact (default: the most recent chats)
        limit: Maximum number of chats when syncing all

    Returns:
        Dict with synced message count, processed conversations and errors
    """
    import asyncio

    async def _sync():
        from uuid import UUID

        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

        from app.config import get_settings
        from app.services.account import get_account
        from app.services.history_sync import sync_history
        from app.services.whatsapp import ZapiClient

        settings = get_settings()
        engine = create_async_engine(settings.async_database_url)
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        client = ZapiClient()

        try:
            async with session_factory() as db:
                account = await get_account(db, UUID(account_id))
                if account is None:
                    logger.warning(f"History sync skipped: account {account_id} not found")
                    return {"error": "account_not_found"}

                report = await sync_history(
                    db,
                    account,
                    client,
                    phone=phone,
                    limit=limit,
                    country_code=settings.default_country_code,
                )
                await db.commit()

                logger.info(
                    f"History sync for account {account_id}: "
                    f"{report.synced_messages} messages, "
                    f"{report.conversations_processed} conversations, "
                    f"{len(report.errors)} errors"
                )
                return report.as_dict()
        finally:
            await client.close()
            await engine.dispose()

    return asyncio.run(_sync())
