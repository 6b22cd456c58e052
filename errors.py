"""Error taxonomy for the chat pipeline.

Each error carries a machine-readable code and the HTTP status the API layer
should answer with. Security rejections are not errors: they are deflected
with a canned reply.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable failure codes returned to clients."""
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    INVALID_REQUEST = "INVALID_REQUEST"
    BOOK_NOT_FOUND = "BOOK_NOT_FOUND"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_RATE_LIMITED = "UPSTREAM_RATE_LIMITED"
    RATE_LIMITED = "RATE_LIMITED"
    DAILY_QUOTA_EXCEEDED = "DAILY_QUOTA_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BookshelfError(Exception):
    """Base class for errors surfaced to API callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class InputRejectedError(BookshelfError):
    """User-correctable input problem."""
    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class MessageTooLongError(InputRejectedError):
    code = ErrorCode.MESSAGE_TOO_LONG


class BookNotFoundError(InputRejectedError):
    code = ErrorCode.BOOK_NOT_FOUND


class ServiceUnavailableError(BookshelfError):
    """The LLM agent failed to initialize at startup."""
    code = ErrorCode.SERVICE_UNAVAILABLE
    status_code = 503


class UpstreamTimeoutError(BookshelfError):
    """Model calls kept timing out, or the request deadline passed."""
    code = ErrorCode.TIMEOUT
    status_code = 504


class UpstreamThrottledError(BookshelfError):
    """The LLM provider reported quota exhaustion."""
    code = ErrorCode.UPSTREAM_RATE_LIMITED
    status_code = 429


class RateLimitExceededError(BookshelfError):
    """Our own admission control rejected the request."""
    code = ErrorCode.RATE_LIMITED
    status_code = 429


class DailyQuotaExceededError(RateLimitExceededError):
    code = ErrorCode.DAILY_QUOTA_EXCEEDED


class UpstreamError(BookshelfError):
    """Model calls failed for a reason other than timeout or quota."""
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
