"""OpenAI LLM client implementation."""

import os
import json
import logging
from typing import Optional, List, Dict

import openai

from .base_client import BaseLLMClient, Message, LLMResponse, ToolCall
from .errors import LLMError, LLMTimeoutError, LLMQuotaExceededError

logger = logging.getLogger(__name__)


def _retry_after(error: openai.APIStatusError) -> Optional[int]:
    """Read a Retry-After header from a provider error, if present."""
    value = error.response.headers.get("retry-after") if error.response is not None else None
    try:
        return int(float(value)) if value else None
    except ValueError:
        return None


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT client implementation."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY env var)
            model: Model to use (default: gpt-4o-mini)
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.client = None

        if self.api_key:
            # Retries are owned by the model gateway
            self.client = openai.OpenAI(api_key=self.api_key, max_retries=0)
            logger.info(f"OpenAI client initialized with model: {self.model}")
        else:
            logger.warning("No OpenAI API key provided")

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        temperature: float = 0.2,
        max_tokens: int = 2048,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """Send chat completion request to OpenAI."""
        if not self.client:
            raise RuntimeError("OpenAI client not initialized. Check API key.")

        # Convert messages to OpenAI format
        openai_messages = []
        for msg in messages:
            openai_msg = {"role": msg.role, "content": msg.content}
            if msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id
            if msg.tool_calls:
                openai_msg["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments, ensure_ascii=False)
                        }
                    }
                    for tc in msg.tool_calls
                ]
            openai_messages.append(openai_msg)

        kwargs = {
            "model": self.model,
            "messages": openai_messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        if timeout is not None:
            kwargs["timeout"] = timeout

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.RateLimitError as e:
            logger.warning(f"OpenAI rate limit: {e}")
            raise LLMQuotaExceededError(str(e), retry_after=_retry_after(e)) from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise LLMError(str(e)) from e

        choice = response.choices[0]
        content = choice.message.content or ""

        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = []
            for tc in choice.message.tool_calls:
                try:
                    arguments = json.loads(tc.function.arguments or "{}")
                except json.JSONDecodeError:
                    logger.warning(f"Malformed tool arguments for {tc.function.name}")
                    arguments = {}
                if not isinstance(arguments, dict):
                    logger.warning(f"Tool arguments for {tc.function.name} are not an object")
                    arguments = {}
                tool_calls.append(ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=arguments
                ))

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason
        )

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
