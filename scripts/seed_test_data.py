"""Seed test data for local Z-API webhook testing.

This script creates:
- Test account
- Active assistant configuration
- One training document

Run this after creating the database schema with Alembic.

Usage:
    python scripts/seed_test_data.py
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.database import async_session_maker
from app.models import Account, AssistantConfig, TrainingDocument, TrainingDocumentStatus
from app.utils.jwt import create_access_token

# Test data constants (matching test_webhook.py)
TEST_ACCOUNT_NAME = "Loja Teste"
TEST_ACCOUNT_PHONE = "5511912345678"


async def seed_data():
    """Seed test data for webhook testing."""
    async with async_session_maker() as db:
        try:
            print("🌱 Starting test data seeding...")
            print("=" * 80)

            result = await db.execute(select(Account).where(Account.name == TEST_ACCOUNT_NAME))
            account = result.scalar_one_or_none()

            if account:
                print(f"✅ Account already exists: {account.name} (ID: {account.id})")
            else:
                print(f"\n📍 Creating account: {TEST_ACCOUNT_NAME}")
                account = Account(name=TEST_ACCOUNT_NAME, phone_number=TEST_ACCOUNT_PHONE)
                db.add(account)
                await db.flush()

                print("🤖 Creating assistant configuration")
                db.add(
                    AssistantConfig(
                        account_id=account.id,
                        is_active=True,
                        agent_name="Ana",
                        company_name=TEST_ACCOUNT_NAME,
                        company_description="Loja de roupas femininas em São Paulo.",
                        sign_agent_name=True,
                    )
                )
                db.add(
                    TrainingDocument(
                        account_id=account.id,
                        title="Horário de funcionamento",
                        content="Segunda a sexta das 9h às 18h. Sábado das 9h às 13h.",
                        status=TrainingDocumentStatus.TRAINED.value,
                    )
                )
                await db.commit()
                print(f"✅ Account created (ID: {account.id})")

            print("\n" + "=" * 80)
            print(f"Webhook URL: /api/v1/webhooks/zapi/{account.id}")
            print(f"Access token: {create_access_token(account.id)}")

        except Exception as e:
            print(f"❌ Error seeding data: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(seed_data())
