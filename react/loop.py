"""Tool-calling loop for the primary model tier."""

import json
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from llm.base_client import BaseLLMClient, Message
from llm.errors import LLMTimeoutError, RequestCancelledError
from .tools import Tool, ToolResult

logger = logging.getLogger(__name__)

FINAL_ANSWER_PROMPT = (
    "Answer now using what the tools returned. Remember the [item::title::id] "
    "format and the EMOTION and SUGGESTIONS tags."
)


class ToolCallingLoop:
    """
    Alternates model calls and tool executions until the model answers.

    Each model call gets a timeout bounded by the request deadline. When the
    iteration budget runs out, one last call without tools forces an answer.
    """

    OBSERVATION_CHARS = 3000

    def __init__(
        self,
        llm_client: BaseLLMClient,
        tools: List[Tool],
        max_iterations: int = 4,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize tool loop.

        Args:
            llm_client: Primary-tier client
            tools: Tools the model may call
            max_iterations: Model calls allowed with tools enabled
            clock: Time source the deadline is measured against
        """
        self.llm_client = llm_client
        self.tools = {tool.name: tool for tool in tools}
        self.max_iterations = max_iterations
        self.clock = clock
        self.tool_definitions = [tool.get_definition() for tool in tools] or None

    def run(
        self,
        messages: List[Message],
        temperature: float = 0.2,
        max_tokens: int = 2048,
        call_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> str:
        """
        Run until the model returns text without tool calls.

        Args:
            messages: System, history, and user messages (not mutated)
            temperature: Sampling temperature
            max_tokens: Token budget per call
            call_timeout: Upper bound for a single model call
            deadline: clock() instant the whole request must finish by
            cancel_event: Set when the caller goes away

        Returns:
            Final model text

        Raises:
            RequestCancelledError: cancel_event was set between calls
            LLMTimeoutError: The deadline passed before a call could start
            LLMError: Propagated from the client
        """
        messages = list(messages)

        for iteration in range(self.max_iterations):
            response = self._call(
                messages, self.tool_definitions, temperature, max_tokens,
                call_timeout, deadline, cancel_event
            )

            if not response.tool_calls:
                logger.debug(f"Tool loop finished in {iteration + 1} iterations")
                return response.content

            messages.append(Message(
                role="assistant",
                content=response.content or "",
                tool_calls=response.tool_calls
            ))
            for tool_call in response.tool_calls:
                logger.info(f"Tool call: {tool_call.name}")
                result = self._execute(tool_call.name, tool_call.arguments)
                messages.append(Message(
                    role="tool",
                    content=self._format_observation(result),
                    tool_call_id=tool_call.id
                ))

        logger.warning("Tool loop reached max iterations, forcing final answer")
        messages.append(Message(role="user", content=FINAL_ANSWER_PROMPT))
        response = self._call(
            messages, None, temperature, max_tokens,
            call_timeout, deadline, cancel_event
        )
        return response.content

    def _call(self, messages, tools, temperature, max_tokens, call_timeout, deadline, cancel_event):
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError("request cancelled")

        timeout = call_timeout
        if deadline is not None:
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise LLMTimeoutError("request deadline exceeded")
            timeout = remaining if timeout is None else min(timeout, remaining)

        return self.llm_client.chat(
            messages=messages,
            tools=tools,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout
        )

    def _execute(self, name: str, arguments: Dict) -> ToolResult:
        tool = self.tools.get(name)
        if tool is None:
            return ToolResult(tool_name=name, success=False, result=None,
                              error=f"Unknown tool '{name}'")
        try:
            return tool.execute(**arguments)
        except TypeError as e:
            # Model supplied arguments the tool does not accept
            logger.warning(f"Bad arguments for {name}: {e}")
            return ToolResult(tool_name=name, success=False, result=None,
                              error="Invalid arguments")
        except Exception as e:
            logger.error(f"Tool {name} error: {e}")
            return ToolResult(tool_name=name, success=False, result=None,
                              error=str(e))

    def _format_observation(self, result: ToolResult) -> str:
        """Format tool result for LLM consumption."""
        if not result.success:
            return f"Error: {result.error}"

        if isinstance(result.result, str):
            result_str = result.result
        else:
            result_str = json.dumps(result.result, ensure_ascii=False, indent=2)
        if len(result_str) > self.OBSERVATION_CHARS:
            result_str = result_str[:self.OBSERVATION_CHARS] + "\n... (truncated)"
        return result_str
