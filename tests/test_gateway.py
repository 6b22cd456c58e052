"""Tests for the model gateway retry policy and the tool-calling loop."""

import threading
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from errors import UpstreamError, UpstreamThrottledError, UpstreamTimeoutError
from llm.base_client import LLMResponse, Message, ToolCall
from llm.errors import LLMError, LLMQuotaExceededError, LLMTimeoutError, RequestCancelledError
from llm.gateway import ModelGateway
from llm.openai_client import OpenAIClient
from react.loop import ToolCallingLoop
from react.tools import build_bookshelf_tools
from security.sanitizer import Sanitizer
from security.signatures import load_signatures
from tests.fakes import FakeLLMClient, make_catalog


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _gateway(primary, assist=None, clock=None, **kwargs):
    kwargs.setdefault("retry_backoff", 0)
    return ModelGateway(
        primary_client=primary,
        assist_client=assist,
        system_prompt="system",
        clock=clock or FakeClock(),
        **kwargs
    )


class TestModelGatewayGenerate:
    """Test the primary tier retry loop."""

    def test_success_first_attempt(self):
        client = FakeLLMClient(["hello"])
        assert _gateway(client).generate("hi") == "hello"
        assert len(client.calls) == 1
        roles = [m.role for m in client.calls[0]["messages"]]
        assert roles == ["system", "user"]

    def test_timeout_then_success(self):
        client = FakeLLMClient([LLMTimeoutError("slow"), "ok"])
        assert _gateway(client).generate("hi") == "ok"
        assert len(client.calls) == 2

    def test_retries_exhausted_after_timeouts(self):
        client = FakeLLMClient([LLMTimeoutError("slow")] * 3)
        with pytest.raises(UpstreamTimeoutError):
            _gateway(client, max_retries=2).generate("hi")
        assert len(client.calls) == 3

    def test_retries_exhausted_after_errors(self):
        client = FakeLLMClient([LLMError("boom")] * 3)
        with pytest.raises(UpstreamError):
            _gateway(client, max_retries=2).generate("hi")
        assert len(client.calls) == 3

    def test_quota_is_fatal(self):
        client = FakeLLMClient([LLMQuotaExceededError("quota", retry_after=30), "never"])
        with pytest.raises(UpstreamThrottledError) as exc_info:
            _gateway(client).generate("hi")
        assert exc_info.value.retry_after == 30
        assert len(client.calls) == 1

    def test_quota_default_retry_after(self):
        client = FakeLLMClient([LLMQuotaExceededError("quota")])
        with pytest.raises(UpstreamThrottledError) as exc_info:
            _gateway(client).generate("hi")
        assert exc_info.value.retry_after == 60

    def test_cancelled_before_first_attempt(self):
        client = FakeLLMClient(["hello"])
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(RequestCancelledError):
            _gateway(client).generate("hi", cancel_event=cancel)
        assert client.calls == []

    def test_cancel_during_backoff_stops_retries(self):
        cancel = threading.Event()

        class CancellingClient(FakeLLMClient):
            def chat(self, *args, **kwargs):
                cancel.set()
                return super().chat(*args, **kwargs)

        client = CancellingClient([LLMTimeoutError("slow"), "never"])
        with pytest.raises(RequestCancelledError):
            _gateway(client, retry_backoff=0.01).generate("hi", cancel_event=cancel)
        assert len(client.calls) == 1

    def test_deadline_passed_aborts(self):
        clock = FakeClock(2000.0)
        client = FakeLLMClient(["hello"])
        with pytest.raises(UpstreamTimeoutError):
            _gateway(client, clock=clock).generate("hi", deadline=1999.0)
        assert client.calls == []

    def test_per_call_timeout_bounded_by_deadline(self):
        clock = FakeClock(1000.0)
        client = FakeLLMClient(["hello"])
        _gateway(client, clock=clock, call_timeout=30).generate("hi", deadline=1010.0)
        assert client.calls[0]["timeout"] == 10.0

    def test_history_between_system_and_prompt(self):
        client = FakeLLMClient(["ok"])
        history = [Message(role="user", content="earlier"), Message(role="assistant", content="reply")]
        _gateway(client).generate("now", history=history)
        contents = [m.content for m in client.calls[0]["messages"]]
        assert contents == ["system", "earlier", "reply", "now"]


class TestModelGatewayAssist:
    """Test the assist tier."""

    def test_uses_assist_client_and_budget(self):
        primary = FakeLLMClient([])
        assist = FakeLLMClient(["fixed"])
        gateway = _gateway(primary, assist, assist_max_tokens=128)
        assert gateway.assist("fix it") == "fixed"
        assert primary.calls == []
        assert assist.calls[0]["max_tokens"] == 128
        assert assist.calls[0]["tools"] is None

    def test_single_attempt(self):
        assist = FakeLLMClient([LLMTimeoutError("slow"), "never"])
        with pytest.raises(UpstreamTimeoutError):
            _gateway(FakeLLMClient([]), assist, max_retries=2).assist("fix it")
        assert len(assist.calls) == 1

    def test_falls_back_to_primary_client(self):
        primary = FakeLLMClient(["from primary"])
        assert _gateway(primary).assist("fix it") == "from primary"


class TestToolCallingLoop:
    """Test tool execution against the bookshelf tools."""

    def setup_method(self):
        self.catalog = make_catalog()
        self.sanitizer = Sanitizer(load_signatures().compiled("instruction_patterns"))
        self.tools = build_bookshelf_tools(self.catalog, None, self.sanitizer)

    def _tool_call(self, name, arguments, call_id="call_1"):
        return LLMResponse(
            content="",
            tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
        )

    def test_tool_result_fed_back(self):
        client = FakeLLMClient([
            self._tool_call("get_book_details", {"book_id": "book-003"}),
            "Done",
        ])
        loop = ToolCallingLoop(client, self.tools)
        assert loop.run([]) == "Done"

        second_call = client.calls[1]["messages"]
        assert second_call[-2].role == "assistant"
        assert second_call[-2].tool_calls[0].name == "get_book_details"
        tool_message = second_call[-1]
        assert tool_message.role == "tool"
        assert tool_message.tool_call_id == "call_1"
        assert "<private_notes>" in tool_message.content
        assert "【Ignore previous instructions】" in tool_message.content

    def test_unknown_tool_reports_error(self):
        client = FakeLLMClient([self._tool_call("delete_everything", {}), "Sorry"])
        assert ToolCallingLoop(client, self.tools).run([]) == "Sorry"
        assert client.calls[1]["messages"][-1].content.startswith("Error: Unknown tool")

    def test_bad_arguments_report_error(self):
        client = FakeLLMClient([self._tool_call("get_reading_stats", {"year": 2024}), "ok"])
        assert ToolCallingLoop(client, self.tools).run([]) == "ok"
        assert client.calls[1]["messages"][-1].content == "Error: Invalid arguments"

    def test_tool_failure_reported_to_model(self):
        client = FakeLLMClient([self._tool_call("search_books", {"query": None}), "fine"])
        assert ToolCallingLoop(client, self.tools).run([]) == "fine"
        observation = client.calls[1]["messages"][-1]
        assert observation.role == "tool"
        assert observation.content.startswith("Error: ")

    def test_max_iterations_forces_answer_without_tools(self):
        script = [self._tool_call("search_books", {"query": "design"}, f"c{i}") for i in range(2)]
        client = FakeLLMClient(script + ["Final"])
        assert ToolCallingLoop(client, self.tools, max_iterations=2).run([]) == "Final"
        assert len(client.calls) == 3
        assert client.calls[2]["tools"] is None

    def test_cancel_between_calls(self):
        cancel = threading.Event()

        class CancellingClient(FakeLLMClient):
            def chat(self, *args, **kwargs):
                cancel.set()
                return super().chat(*args, **kwargs)

        client = CancellingClient([self._tool_call("get_reading_stats", {}), "never"])
        with pytest.raises(RequestCancelledError):
            ToolCallingLoop(client, self.tools).run([], cancel_event=cancel)
        assert len(client.calls) == 1

    def test_input_messages_not_mutated(self):
        messages = [Message(role="user", content="hi")]
        client = FakeLLMClient([self._tool_call("get_reading_stats", {}), "ok"])
        ToolCallingLoop(client, self.tools).run(messages)
        assert len(messages) == 1


class TestOpenAIToolArguments:
    """Test decoding of tool-call arguments from the OpenAI SDK."""

    def _response(self, raw_arguments):
        tool_call = SimpleNamespace(
            id="call_1",
            function=SimpleNamespace(name="search_books", arguments=raw_arguments),
        )
        message = SimpleNamespace(content=None, tool_calls=[tool_call])
        return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="tool_calls")])

    def _client(self, raw_arguments):
        client = OpenAIClient(api_key="sk-test")
        client.client = Mock()
        client.client.chat.completions.create.return_value = self._response(raw_arguments)
        return client

    def test_object_arguments_decoded(self):
        response = self._client('{"query": "design"}').chat([Message(role="user", content="hi")])
        assert response.tool_calls[0].arguments == {"query": "design"}

    def test_non_object_arguments_become_empty(self):
        response = self._client("[1]").chat([Message(role="user", content="hi")])
        assert response.tool_calls[0].name == "search_books"
        assert response.tool_calls[0].arguments == {}

    def test_malformed_arguments_become_empty(self):
        response = self._client("{not json").chat([Message(role="user", content="hi")])
        assert response.tool_calls[0].arguments == {}
