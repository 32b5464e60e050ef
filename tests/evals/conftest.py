"""Eval test fixtures.

These fixtures make real AI gateway calls. Z-API stays mocked, so nothing is
sent to WhatsApp.
"""

import pytest

from app.ai.client import AIGatewayClient
from app.config import get_settings

settings = get_settings()


@pytest.fixture
def live_ai_client() -> AIGatewayClient:
    """Real gateway client; skips the test when no key is configured."""
    if not settings.ai_gateway_api_key:
        pytest.skip("AI_GATEWAY_API_KEY not set")
    return AIGatewayClient()
