"""LLM client abstraction layer."""

from .base_client import BaseLLMClient, Message, LLMResponse, ToolCall
from .errors import LLMError, LLMTimeoutError, LLMQuotaExceededError, RequestCancelledError
from .factory import create_llm_client, create_assist_client, LLMProvider

__all__ = [
    "BaseLLMClient",
    "Message",
    "LLMResponse",
    "ToolCall",
    "LLMError",
    "LLMTimeoutError",
    "LLMQuotaExceededError",
    "RequestCancelledError",
    "create_llm_client",
    "create_assist_client",
    "LLMProvider",
]
