"""Provider-neutral LLM error types."""

from typing import Optional


class LLMError(Exception):
    """Generic failure talking to an LLM provider (retryable)."""


class LLMTimeoutError(LLMError):
    """The provider did not answer within the per-call timeout."""


class LLMQuotaExceededError(LLMError):
    """The provider reported resource exhaustion (HTTP 429 / quota)."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class RequestCancelledError(Exception):
    """The caller went away; never retried."""
