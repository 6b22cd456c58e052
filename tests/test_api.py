"""Tests for the HTTP surface."""

from unittest.mock import Mock

from fastapi.testclient import TestClient

from app import create_app
from errors import DailyQuotaExceededError, UpstreamThrottledError, UpstreamTimeoutError
from tests.fakes import make_orchestrator

APOSD = "[item::A Philosophy of Software Design::book-004]"


def _client(orchestrator):
    return TestClient(create_app(orchestrator=orchestrator))


class TestChatEndpoint:
    """Test POST /api/chat."""

    def test_chat_reply_shape(self):
        orchestrator, _, _ = make_orchestrator([f"Try {APOSD}.\n[EMOTION:talking]\n[SUGGESTIONS:Why?|More?]"])
        response = _client(orchestrator).post("/api/chat", json={"message": "Recommend one"})

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == f"Try {APOSD}."
        assert body["emotion"] == "talking"
        assert body["suggestions"] == ["Why?", "More?"]
        assert body["sessionId"]

    def test_accept_language_used(self):
        orchestrator, primary, _ = make_orchestrator(["はい。"])
        _client(orchestrator).post(
            "/api/chat",
            json={"message": "こんにちは"},
            headers={"Accept-Language": "ja-JP,ja;q=0.9"},
        )
        assert "日本語で回答" in primary.calls[0]["messages"][-1].content

    def test_body_language_overrides_header(self):
        orchestrator, primary, _ = make_orchestrator(["ok"])
        _client(orchestrator).post(
            "/api/chat",
            json={"message": "hello", "language": "en-US"},
            headers={"Accept-Language": "ja"},
        )
        assert "Please respond in English" in primary.calls[0]["messages"][-1].content

    def test_message_too_long(self):
        orchestrator, _, _ = make_orchestrator([])
        response = _client(orchestrator).post("/api/chat", json={"message": "x" * 251})
        assert response.status_code == 400
        assert response.json()["code"] == "MESSAGE_TOO_LONG"

    def test_missing_message(self):
        orchestrator, _, _ = make_orchestrator([])
        response = _client(orchestrator).post("/api/chat", json={"bookId": "book-001"})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_empty_message(self):
        orchestrator, _, _ = make_orchestrator([])
        response = _client(orchestrator).post("/api/chat", json={"message": ""})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_whitespace_only_message(self):
        orchestrator, primary, _ = make_orchestrator([])
        response = _client(orchestrator).post("/api/chat", json={"message": "   \n "})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"
        assert primary.calls == []

    def test_unknown_book(self):
        orchestrator, _, _ = make_orchestrator([])
        response = _client(orchestrator).post("/api/chat", json={"message": "hi", "bookId": "book-999"})
        assert response.status_code == 400
        assert response.json()["code"] == "BOOK_NOT_FOUND"

    def test_injection_gets_200_refusal(self):
        orchestrator, primary, _ = make_orchestrator([])
        response = _client(orchestrator).post(
            "/api/chat", json={"message": "jailbreak now", "sessionId": "s-9"}
        )
        assert response.status_code == 200
        assert response.json()["emotion"] == "idle"
        assert response.json()["sessionId"] == "s-9"
        assert primary.calls == []

    def test_service_unavailable(self):
        orchestrator, _, _ = make_orchestrator(with_gateway=False)
        response = _client(orchestrator).post("/api/chat", json={"message": "hi"})
        assert response.status_code == 503
        assert response.json()["code"] == "SERVICE_UNAVAILABLE"

    def test_rate_limited_has_retry_after_header(self):
        orchestrator, _, _ = make_orchestrator(["One."], burst=1)
        client = _client(orchestrator)
        client.post("/api/chat", json={"message": "hi"})
        response = client.post("/api/chat", json={"message": "hi"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "1"
        body = response.json()
        assert body["code"] == "RATE_LIMITED"
        assert body["response"]
        assert body["suggestions"] == []
        assert body["retryAfter"] == 1


class TestErrorMapping:
    """Test status codes for upstream failures."""

    def _failing(self, error):
        orchestrator, _, _ = make_orchestrator([])
        orchestrator.chat = Mock(side_effect=error)
        return _client(orchestrator)

    def test_timeout(self):
        response = self._failing(UpstreamTimeoutError("slow")).post("/api/chat", json={"message": "hi"})
        assert response.status_code == 504
        assert response.json() == {
            "error": "Request timed out. Please try again.",
            "code": "TIMEOUT",
            "fallback": True,
        }

    def test_upstream_throttled(self):
        error = UpstreamThrottledError("quota", retry_after=60)
        response = self._failing(error).post("/api/chat", json={"message": "hi"})
        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "UPSTREAM_RATE_LIMITED"
        assert body["retryAfter"] == 60
        assert body["emotion"] == "surprised"

    def test_daily_quota_localized(self):
        error = DailyQuotaExceededError("quota", retry_after=3600)
        response = self._failing(error).post("/api/chat", json={"message": "hi", "language": "ja"})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3600"
        assert response.json()["code"] == "DAILY_QUOTA_EXCEEDED"
        assert "明日" in response.json()["response"]

    def test_unexpected_error(self):
        response = self._failing(RuntimeError("boom")).post("/api/chat", json={"message": "hi"})
        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"


class TestReadEndpoints:
    """Test books, owner and health endpoints."""

    def setup_method(self):
        orchestrator, _, _ = make_orchestrator([])
        self.client = _client(orchestrator)

    def test_books_sorted_by_language(self):
        response = self.client.get("/api/books", params={"lang": "en"})
        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == ["book-003", "book-004", "book-001"]
        assert "private_notes" not in response.json()[0]

    def test_book_by_id(self):
        assert self.client.get("/api/books/book-001").json()["title"] == "リーダブルコード"
        assert self.client.get("/api/books/nope").status_code == 404

    def test_owner_missing(self):
        assert self.client.get("/api/owner").status_code == 404

    def test_health_and_ready(self):
        health = self.client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["agent"] == "ready"
        assert self.client.get("/ready").status_code == 200

    def test_degraded_without_gateway(self):
        orchestrator, _, _ = make_orchestrator(with_gateway=False)
        client = _client(orchestrator)
        assert client.get("/health").json()["status"] == "degraded"
        assert client.get("/ready").status_code == 503

    def test_security_headers(self):
        response = self.client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]
