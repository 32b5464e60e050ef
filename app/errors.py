"""Exception types raised by the messaging and AI services."""


class ZapdeskError(Exception):
    """Base class for service errors."""


class ConfigurationError(ZapdeskError):
    """A required credential or setting is missing."""


class ExternalServiceError(ZapdeskError):
    """An external API call failed. Never retried."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayError(ExternalServiceError):
    """The WhatsApp gateway rejected or failed a request."""


class CompletionError(ExternalServiceError):
    """The AI completion gateway failed or returned nothing."""


class CompletionRateLimitError(CompletionError):
    """The AI completion gateway rate-limited the request (HTTP 429)."""


class CompletionQuotaError(CompletionError):
    """The AI completion gateway reported exhausted credits (HTTP 402)."""


class TranscriptionError(ExternalServiceError):
    """Audio download or speech-to-text failed."""


class SpeechSynthesisError(ExternalServiceError):
    """Text-to-speech generation failed."""
