"""ElevenLabs text-to-speech client."""

import logging

import httpx

from app.config import get_settings
from app.errors import ConfigurationError, SpeechSynthesisError

logger = logging.getLogger(__name__)
settings = get_settings()

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
OUTPUT_FORMAT = "mp3_44100_128"
VOICE_SETTINGS = {
    "stability": 0.75,
    "similarity_boost": 0.80,
    "style": 0.0,
    "use_speaker_boost": True,
}


class ElevenLabsClient:
    """Synthesizes voice replies as mp3."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or settings.elevenlabs_api_key
        self.model = model or settings.elevenlabs_model

    @property
    def is_configured(self) -> bool:
        """Check if an API key is present."""
        return bool(self.api_key)

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Convert text to mp3 audio.

        Args:
            text: Text to speak
            voice_id: ElevenLabs voice id

        Returns:
            mp3 bytes

        Raises:
            ConfigurationError: If no API key is configured
            SpeechSynthesisError: If ElevenLabs rejects the request
        """
        if not self.api_key:
            raise ConfigurationError("ElevenLabs API key not configured")

        url = f"{ELEVENLABS_BASE_URL}/text-to-speech/{voice_id}"
        payload = {"text": text, "model_id": self.model, "voice_settings": VOICE_SETTINGS}

        try:
            async with httpx.AsyncClient(timeout=60.0) as client:
                response = await client.post(
                    url,
                    params={"output_format": OUTPUT_FORMAT},
                    json=payload,
                    headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"ElevenLabs error: {e.response.status_code} {e.response.text}")
            raise SpeechSynthesisError(
                "Failed to generate audio", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"ElevenLabs request error: {e}")
            raise SpeechSynthesisError(f"Failed to generate audio: {e}") from e

        logger.info(f"Synthesized {len(response.content)} bytes of audio with voice {voice_id}")
        return response.content
