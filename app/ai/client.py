"""AI gateway client - chat completions and audio transcription.

The gateway speaks the OpenAI chat-completions protocol, so the OpenAI SDK is
pointed at its base URL. Calls are never retried: a rate limit or exhausted
quota is reported to the caller as is.
"""

import base64
import logging
from typing import Any

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError

from app.ai.prompts import TRANSCRIPTION_PROMPT
from app.config import get_settings
from app.errors import (
    CompletionError,
    CompletionQuotaError,
    CompletionRateLimitError,
    ConfigurationError,
    TranscriptionError,
)

logger = logging.getLogger(__name__)
settings = get_settings()


class AIGatewayClient:
    """Wrapper around the OpenAI-compatible AI gateway."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        """Initialize the gateway client.

        Args:
            api_key: Gateway API key (defaults to settings)
            base_url: Gateway base URL (defaults to settings)
        """
        self.api_key = api_key or settings.ai_gateway_api_key
        self.base_url = base_url or settings.ai_gateway_url
        if not self.api_key:
            logger.warning("No AI gateway API key configured - AI replies will be disabled")
            self.client = None
        else:
            self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)

    @property
    def is_configured(self) -> bool:
        """Check if client is properly configured."""
        return self.client is not None

    def _require_client(self) -> AsyncOpenAI:
        if self.client is None:
            raise ConfigurationError("AI gateway not configured - missing API key")
        return self.client

    async def create_message(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Run a chat completion and return the assistant text.

        Args:
            system_prompt: System prompt
            messages: Conversation history plus the current user message
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            model: Model name on the gateway

        Returns:
            Assistant reply text

        Raises:
            ConfigurationError: If no API key is configured
            CompletionRateLimitError: On HTTP 429
            CompletionQuotaError: On HTTP 402
            CompletionError: On any other failure or an empty reply
        """
        client = self._require_client()
        model = model or settings.ai_model

        logger.debug(f"Creating completion:\n  Model: {model}\n  Messages: {len(messages)}")

        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system_prompt}] + messages,
                max_tokens=max_tokens or settings.ai_max_tokens,
                temperature=settings.ai_temperature if temperature is None else temperature,
            )
        except RateLimitError as e:
            logger.warning(f"Rate limited by AI gateway: {e}")
            raise CompletionRateLimitError(
                "Rate limit exceeded. Please try again later.", status_code=429
            ) from e
        except APIStatusError as e:
            if e.status_code == 402:
                logger.error(f"AI gateway quota exhausted: {e}")
                raise CompletionQuotaError(
                    "Payment required. Please add credits to your workspace.", status_code=402
                ) from e
            logger.error(f"AI gateway error: {e}")
            raise CompletionError(f"AI gateway error: {e}", status_code=e.status_code) from e
        except (APIConnectionError, APIError) as e:
            logger.error(f"AI gateway error: {e}")
            raise CompletionError(f"AI gateway error: {e}") from e

        text = self.extract_text_response(response)
        if not text.strip():
            raise CompletionError("No response from AI")
        return text

    def extract_text_response(self, response: Any) -> str:
        """Extract text content from a completion response.

        Args:
            response: Completion response object

        Returns:
            Text content from the response
        """
        if not response.choices:
            return ""
        message = response.choices[0].message
        return message.content or ""

    async def transcribe_audio(self, audio_url: str) -> str:
        """Download an audio message and transcribe it through the gateway.

        Args:
            audio_url: Public URL of the audio file

        Returns:
            Transcribed text

        Raises:
            TranscriptionError: If download or transcription fails
        """
        client = self._require_client()
        logger.info(f"Transcribing audio from: {audio_url}")

        try:
            async with httpx.AsyncClient(timeout=30.0) as http:
                audio_response = await http.get(audio_url)
                audio_response.raise_for_status()
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Failed to download audio: {e}") from e

        audio_b64 = base64.b64encode(audio_response.content).decode("ascii")
        try:
            response = await client.chat.completions.create(
                model=settings.ai_transcription_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": TRANSCRIPTION_PROMPT},
                            {
                                "type": "input_audio",
                                "input_audio": {"data": audio_b64, "format": "mp3"},
                            },
                        ],
                    }
                ],
                max_tokens=1000,
            )
        except APIError as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        transcription = self.extract_text_response(response).strip()
        if not transcription:
            raise TranscriptionError("Empty transcription")
        logger.info(f"Transcription result: {transcription[:100]}")
        return transcription


# Singleton instance for easy access
_client: AIGatewayClient | None = None


def get_ai_client() -> AIGatewayClient:
    """Get singleton AI gateway client instance."""
    global _client
    if _client is None:
        _client = AIGatewayClient()
    return _client
