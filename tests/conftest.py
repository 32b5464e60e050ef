"""Pytest configuration and fixtures."""

from itertools import count
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings
from app.errors import CompletionError
from app.models import (
    Account,
    AssistantConfig,
    Base,
    Conversation,
    CommunicationStyle,
)

settings = get_settings()


def pytest_addoption(parser):
    """Add custom CLI options."""
    parser.addoption(
        "--run-evals",
        action="store_true",
        default=False,
        help="Run eval tests (requires a real AI gateway key)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip eval tests unless --run-evals is passed."""
    if config.getoption("--run-evals"):
        return
    skip_eval = pytest.mark.skip(reason="need --run-evals option to run")
    for item in items:
        if "eval" in item.keywords:
            item.add_marker(skip_eval)


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No waiting between chunks in tests."""
    monkeypatch.setattr(settings, "split_delay_seconds", 0.0)
    return settings


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a throwaway SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def account(db: AsyncSession) -> Account:
    """Create test account."""
    acc = Account(id=uuid4(), name="Loja Teste", phone_number="5511912345678")
    db.add(acc)
    await db.flush()
    return acc


@pytest_asyncio.fixture
async def other_account(db: AsyncSession) -> Account:
    """Create a second, unrelated account."""
    acc = Account(id=uuid4(), name="Outra Loja", phone_number="5521912345678")
    db.add(acc)
    await db.flush()
    return acc


@pytest_asyncio.fixture
async def assistant_config(db: AsyncSession, account: Account) -> AssistantConfig:
    """Create an active assistant config with indicators and delays off."""
    config = AssistantConfig(
        id=uuid4(),
        account_id=account.id,
        is_active=True,
        agent_name="Ana",
        communication_style=CommunicationStyle.NORMAL.value,
        company_name="Loja Teste",
        company_description="Roupas femininas",
        use_emojis=False,
        split_long_messages=True,
        disable_group_messages=True,
        show_typing_indicator=False,
        show_recording_indicator=False,
        response_delay_seconds=0,
    )
    db.add(config)
    await db.flush()
    return config


@pytest_asyncio.fixture
async def conversation(db: AsyncSession, account: Account) -> Conversation:
    """Create a conversation with a phone-identified contact."""
    conv = Conversation(
        id=uuid4(),
        account_id=account.id,
        contact_key="5511987654321",
        contact_phone="5511987654321",
        contact_name="Maria",
        unread_count=0,
    )
    db.add(conv)
    await db.flush()
    return conv


class MockAIClient:
    """Mock AI gateway client for deterministic replies in tests.

    Usage:
        client = MockAIClient()
        client.queue_response("Olá! Como posso ajudar?")
        client.queue_error(CompletionRateLimitError("Rate limit", status_code=429))
        reply = await client.create_message(...)
    """

    is_configured = True

    def __init__(self):
        self._response_queue: list[str | Exception] = []
        self.calls: list[dict[str, Any]] = []
        self.transcription: str | Exception = "transcrição do áudio"
        self.transcribed_urls: list[str] = []

    def queue_response(self, content: str) -> None:
        """Queue a reply for the next create_message call."""
        self._response_queue.append(content)

    def queue_error(self, error: Exception) -> None:
        """Make the next create_message call raise ``error``."""
        self._response_queue.append(error)

    async def create_message(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Return queued response or a default reply."""
        self.calls.append({"system_prompt": system_prompt, "messages": messages})
        if self._response_queue:
            response = self._response_queue.pop(0)
            if isinstance(response, Exception):
                raise response
            if not response.strip():
                raise CompletionError("No response from AI")
            return response
        return "Claro! Posso ajudar com isso."

    async def transcribe_audio(self, audio_url: str) -> str:
        """Return the configured transcription, or raise it."""
        self.transcribed_urls.append(audio_url)
        if isinstance(self.transcription, Exception):
            raise self.transcription
        return self.transcription


@pytest.fixture
def mock_ai_client() -> MockAIClient:
    """Return a mock AI gateway client."""
    return MockAIClient()


@pytest.fixture
def mock_speech_client() -> MagicMock:
    """Return a configured mock ElevenLabs client."""
    client = MagicMock()
    client.is_configured = True
    client.synthesize = AsyncMock(return_value=b"ID3fake-mp3")
    return client


@pytest.fixture
def mock_whatsapp_client() -> MagicMock:
    """Return a mock Z-API client whose sends get distinct message ids."""
    ids = count(1)
    client = MagicMock()
    client.mock_mode = False
    client.send_text = AsyncMock(side_effect=lambda phone, message: {"messageId": f"out_{next(ids)}"})
    client.send_audio = AsyncMock(side_effect=lambda phone, audio: {"messageId": f"audio_{next(ids)}"})
    client.send_presence = AsyncMock(return_value=True)
    client.configure_webhooks = AsyncMock(return_value={"update-webhook-received": {"value": True}})
    client.list_chats = AsyncMock(return_value=[])
    client.get_chat_messages = AsyncMock(return_value=[])
    return client


def received_payload(
    text: str | None = "Oi, tudo bem?",
    phone: str | None = "5511987654321",
    message_id: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a Z-API ReceivedCallback payload."""
    payload: dict[str, Any] = {
        "type": "ReceivedCallback",
        "messageId": message_id or f"IN{uuid4().hex[:16].upper()}",
        "fromMe": False,
        "isGroup": False,
        "isNewsletter": False,
    }
    if phone is not None:
        payload["phone"] = phone
    if text is not None:
        payload["text"] = {"message": text}
    payload.update(extra)
    return payload


@pytest.fixture
def make_payload():
    """Factory for Z-API ReceivedCallback payloads."""
    return received_payload
