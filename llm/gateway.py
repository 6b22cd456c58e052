"""Model gateway: timeouts, retries and tiers around the LLM clients."""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from errors import UpstreamError, UpstreamThrottledError, UpstreamTimeoutError
from react.loop import ToolCallingLoop
from react.tools import Tool
from .base_client import BaseLLMClient, Message
from .errors import LLMError, LLMQuotaExceededError, LLMTimeoutError, RequestCancelledError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class AttemptResult(BaseModel):
    """Outcome of one model attempt."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: AttemptStatus
    text: str = ""
    error: Optional[Exception] = None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, LLMTimeoutError)


class ModelGateway:
    """
    Two-tier access to the model.

    The primary tier answers user turns with tool calling. The assist tier is a
    single cheap attempt used for corrections. Every attempt runs under a
    per-call timeout no longer than what is left of the request deadline.

    Retry policy:
        - cancellation: checked before each attempt, never retried
        - quota exhaustion: fatal, surfaces as UpstreamThrottledError
        - timeouts and other provider errors: retried up to max_retries with
          linear backoff (attempt × retry_backoff_seconds)
        - exceeded request deadline: aborts immediately
    """

    def __init__(
        self,
        primary_client: BaseLLMClient,
        assist_client: Optional[BaseLLMClient] = None,
        tools: Optional[List[Tool]] = None,
        system_prompt: str = "",
        generate_temperature: float = 0.2,
        generate_max_tokens: int = 2048,
        assist_temperature: float = 0.2,
        assist_max_tokens: int = 256,
        max_tool_iterations: int = 4,
        call_timeout: float = 30.0,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        clock: Callable[[], float] = time.monotonic
    ):
        self.primary_client = primary_client
        self.assist_client = assist_client or primary_client
        self.system_prompt = system_prompt
        self.generate_temperature = generate_temperature
        self.generate_max_tokens = generate_max_tokens
        self.assist_temperature = assist_temperature
        self.assist_max_tokens = assist_max_tokens
        self.call_timeout = call_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.clock = clock
        self.loop = ToolCallingLoop(
            primary_client, tools or [], max_iterations=max_tool_iterations, clock=clock
        )

        logger.info(
            f"Model gateway ready: primary={primary_client.get_model_name()}, "
            f"assist={self.assist_client.get_model_name()}"
        )

    def generate(
        self,
        prompt: str,
        history: Optional[List[Message]] = None,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> str:
        """
        Primary-tier answer to one user turn.

        Args:
            prompt: Assembled user-turn context
            history: Prior turns of the live session
            cancel_event: Set when the client disconnects
            deadline: clock() instant the request must finish by

        Returns:
            Raw model text, control tags included

        Raises:
            RequestCancelledError, UpstreamThrottledError,
            UpstreamTimeoutError, UpstreamError
        """
        messages = []
        if self.system_prompt:
            messages.append(Message(role="system", content=self.system_prompt))
        messages.extend(history or [])
        messages.append(Message(role="user", content=prompt))

        def attempt(timeout: float) -> str:
            return self.loop.run(
                messages,
                temperature=self.generate_temperature,
                max_tokens=self.generate_max_tokens,
                call_timeout=timeout,
                deadline=deadline,
                cancel_event=cancel_event,
            )

        return self._run_with_retries(attempt, self.max_retries, cancel_event, deadline)

    def assist(
        self,
        prompt: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> str:
        """Single assist-tier attempt with a small token budget."""
        messages = [Message(role="user", content=prompt)]

        def attempt(timeout: float) -> str:
            response = self.assist_client.chat(
                messages=messages,
                temperature=self.assist_temperature,
                max_tokens=self.assist_max_tokens,
                timeout=timeout,
            )
            return response.content

        return self._run_with_retries(attempt, 0, cancel_event, deadline)

    def _attempt(self, call: Callable[[float], str], deadline: Optional[float]) -> AttemptResult:
        timeout = self.call_timeout
        if deadline is not None:
            timeout = min(timeout, deadline - self.clock())

        try:
            return AttemptResult(status=AttemptStatus.SUCCESS, text=call(timeout) or "")
        except LLMQuotaExceededError as e:
            return AttemptResult(status=AttemptStatus.FATAL, error=e)
        except LLMError as e:
            return AttemptResult(status=AttemptStatus.RETRYABLE, error=e)

    def _run_with_retries(
        self,
        call: Callable[[float], str],
        max_retries: int,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float]
    ) -> str:
        last: Optional[AttemptResult] = None

        for attempt in range(max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError("request cancelled")
            if deadline is not None and self.clock() >= deadline:
                raise UpstreamTimeoutError("Request timed out")

            last = self._attempt(call, deadline)

            if last.status == AttemptStatus.SUCCESS:
                return last.text

            if last.status == AttemptStatus.FATAL:
                retry_after = getattr(last.error, "retry_after", None) or DEFAULT_RETRY_AFTER
                logger.warning(f"Upstream quota exhausted, retry after {retry_after}s")
                raise UpstreamThrottledError("Upstream rate limited", retry_after=retry_after)

            logger.warning(f"Model attempt {attempt + 1}/{max_retries + 1} failed: {last.error}")
            if attempt < max_retries:
                backoff = (attempt + 1) * self.retry_backoff
                if cancel_event is not None:
                    if cancel_event.wait(backoff):
                        raise RequestCancelledError("request cancelled")
                elif backoff > 0:
                    time.sleep(backoff)

        if last is not None and last.timed_out:
            raise UpstreamTimeoutError("Request timed out") from last.error
        raise UpstreamError("Model call failed") from (last.error if last else None)
