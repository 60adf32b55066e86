"""Exception hierarchy for the chat pipeline.

The API layer maps these to HTTP status codes:
- ValidationError -> 400
- PolicyError -> 422
- UpstreamError, GenerationError -> 500
"""

from typing import Optional


class ChatbotError(Exception):
    """Base error class for chatbot errors"""


class ValidationError(ChatbotError):
    """Empty, non-text or oversized input"""


class PolicyError(ChatbotError):
    """Message contains a forbidden keyword"""


class UpstreamError(ChatbotError):
    """A provider (document store, translation, LLM, speech) failed.

    The original exception is kept as ``__cause__`` (raise ... from exc) so
    the API layer can surface the raw provider message for diagnostics.
    """

    def __init__(self, message: str, provider: str = "unknown", details: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.details = details

    def __str__(self) -> str:
        base = super().__str__()
        if self.details:
            return f"{base}: {self.details}"
        return base


class GenerationError(ChatbotError):
    """The LLM returned no content"""
