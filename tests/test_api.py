"""Tests for the HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from app.api.deps import get_db, get_whatsapp_client
from app.main import app, lifespan
from app.models import Contact, Message
from app.services.conversation_store import store_message
from app.utils.jwt import create_access_token


@pytest_asyncio.fixture
async def client(db, mock_whatsapp_client):
    """HTTP client bound to the test session and a mock Z-API client."""

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_whatsapp_client] = lambda: mock_whatsapp_client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.id)}"}


class TestHealth:
    """Root and health endpoints."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_api_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.json()["status"] == "ok"

    async def test_webhook_status(self, client):
        response = await client.get("/api/v1/webhooks/zapi/status")

        assert response.json()["provider"] == "z-api"


class TestZapiWebhook:
    """POST /api/v1/webhooks/zapi/{account_id}."""

    async def test_status_callback(self, client, db, account, conversation):
        await store_message(db, conversation, content="Olá", is_from_contact=False, zapi_message_id="S1")

        response = await client.post(
            f"/api/v1/webhooks/zapi/{account.id}",
            json={"type": "MessageStatusCallback", "status": "RECEIVED", "ids": ["S1"]},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "updated": 1}
        message = (await db.execute(select(Message))).scalar_one()
        assert message.status == "received"

    async def test_from_me_message_is_stored(self, client, db, account, make_payload):
        response = await client.post(
            f"/api/v1/webhooks/zapi/{account.id}",
            json=make_payload(text="Pedido confirmado", fromMe=True, message_id="ME1"),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        message = (await db.execute(select(Message))).scalar_one()
        assert message.zapi_message_id == "ME1"

    async def test_non_object_body(self, client, account):
        response = await client.post(f"/api/v1/webhooks/zapi/{account.id}", json=["not", "an", "object"])

        assert response.status_code == 400

    async def test_unknown_account(self, client, make_payload):
        response = await client.post(f"/api/v1/webhooks/zapi/{uuid4()}", json=make_payload())

        assert response.status_code == 404

    async def test_handler_failure_returns_500(self, client, account, make_payload):
        with patch("app.api.v1.webhooks.WebhookHandler") as handler_cls:
            handler_cls.return_value.handle = AsyncMock(side_effect=RuntimeError("boom"))
            response = await client.post(f"/api/v1/webhooks/zapi/{account.id}", json=make_payload())

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}


class TestAuthentication:
    """Bearer tokens on account endpoints."""

    async def test_missing_token(self, client, account):
        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/webhook-setup", json={}
        )

        assert response.status_code == 401

    async def test_invalid_token(self, client, account):
        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/webhook-setup",
            json={},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    async def test_token_for_other_account(self, client, account, other_account):
        headers = {"Authorization": f"Bearer {create_access_token(other_account.id)}"}

        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/webhook-setup", json={}, headers=headers
        )

        assert response.status_code == 403


class TestWhatsAppEndpoints:
    """Account WhatsApp management endpoints."""

    async def test_send_message(self, client, account, conversation, auth_headers, mock_whatsapp_client):
        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/messages",
            json={"content": "Seu pedido saiu", "conversation_id": str(conversation.id)},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["content"] == "Seu pedido saiu"
        assert data["is_from_contact"] is False
        assert data["zapi_message_id"] == "out_1"
        mock_whatsapp_client.send_text.assert_awaited_once()

    async def test_send_message_requires_target(self, client, account, auth_headers):
        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/messages",
            json={"content": "Oi"},
            headers=auth_headers,
        )

        assert response.status_code == 422

    async def test_webhook_setup_defaults_to_this_service(
        self, client, account, auth_headers, mock_whatsapp_client
    ):
        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/webhook-setup", json={}, headers=auth_headers
        )

        assert response.status_code == 200
        webhook_url = response.json()["webhook_url"]
        assert webhook_url.endswith(f"/api/v1/webhooks/zapi/{account.id}")
        mock_whatsapp_client.configure_webhooks.assert_awaited_once_with(webhook_url)

    async def test_contact_automation_switch(self, client, db, account, auth_headers):
        response = await client.patch(
            f"/api/v1/accounts/{account.id}/whatsapp/contacts/5511987654321/automation",
            json={"bot_disabled": True},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["bot_disabled"] is True
        contact = (await db.execute(select(Contact))).scalar_one()
        assert contact.phone == "5511987654321"
        assert contact.bot_disabled is True

    async def test_sync_inline(self, client, account, auth_headers, mock_whatsapp_client):
        mock_whatsapp_client.get_chat_messages = AsyncMock(return_value=[
            {"messageId": "H1", "text": {"message": "Oi"}},
        ])

        response = await client.post(
            f"/api/v1/accounts/{account.id}/whatsapp/sync",
            json={"phone": "5511987654321"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["synced_messages"] == 1
        assert data["conversations_processed"] == 1
        assert data["task_id"] is None

    async def test_sync_queued(self, client, account, auth_headers):
        with patch("app.tasks.sync.sync_whatsapp_history.delay") as delay:
            delay.return_value = MagicMock(id="task-123")
            response = await client.post(
                f"/api/v1/accounts/{account.id}/whatsapp/sync",
                json={"run_async": True, "limit": 10},
                headers=auth_headers,
            )

        assert response.status_code == 200
        assert response.json()["task_id"] == "task-123"
        delay.assert_called_once_with(str(account.id), None, 10)


class TestLifespan:
    """Startup and shutdown."""

    async def test_shutdown_closes_clients(self):
        engine = MagicMock()
        engine.connect.return_value.__aenter__ = AsyncMock(return_value=MagicMock())
        engine.connect.return_value.__aexit__ = AsyncMock(return_value=False)
        engine.dispose = AsyncMock()

        with patch("app.main.engine", engine), patch(
            "app.main.close_zapi_client", new_callable=AsyncMock
        ) as close_client:
            async with lifespan(app):
                close_client.assert_not_awaited()

        close_client.assert_awaited_once()
        engine.dispose.assert_awaited_once()
