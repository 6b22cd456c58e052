"""HTTP API for the talking bookshelf."""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from agents.language import resolve_language
from agents.prompts import (
    DAILY_QUOTA_MESSAGES,
    RATE_LIMITED_MESSAGES,
    UPSTREAM_THROTTLED_MESSAGE,
)
from config.settings import Settings
from errors import BookshelfError, ErrorCode
from llm.errors import RequestCancelledError
from orchestrator import BookshelfOrchestrator
from schemas.chat import ChatRequest, Emotion, ErrorResponse

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    ErrorCode.MESSAGE_TOO_LONG: "Message is too long (max 250 characters)",
    ErrorCode.INVALID_REQUEST: "Invalid request: message is required",
    ErrorCode.BOOK_NOT_FOUND: "The specified book was not found",
    ErrorCode.SERVICE_UNAVAILABLE: "AI service is not available",
    ErrorCode.TIMEOUT: "Request timed out. Please try again.",
    ErrorCode.INTERNAL_ERROR: "Failed to generate response. Please try again.",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

# Status for a request whose client disconnected; never actually delivered
CLIENT_CLOSED_REQUEST = 499


def error_response(error: BookshelfError, language: str = "en") -> JSONResponse:
    """Map a pipeline error to its HTTP response."""
    lang = language if language in RATE_LIMITED_MESSAGES else "en"
    headers = {}

    if error.code in (ErrorCode.RATE_LIMITED, ErrorCode.DAILY_QUOTA_EXCEEDED):
        messages = DAILY_QUOTA_MESSAGES if error.code == ErrorCode.DAILY_QUOTA_EXCEEDED else RATE_LIMITED_MESSAGES
        body = ErrorResponse(
            code=error.code.value,
            response=messages[lang],
            emotion=Emotion.IDLE,
            suggestions=[],
            retry_after=error.retry_after,
        )
        if error.retry_after:
            headers["Retry-After"] = str(error.retry_after)
    elif error.code == ErrorCode.UPSTREAM_RATE_LIMITED:
        body = ErrorResponse(
            code=error.code.value,
            response=UPSTREAM_THROTTLED_MESSAGE,
            emotion=Emotion.SURPRISED,
            suggestions=[],
            fallback=True,
            retry_after=error.retry_after,
        )
    else:
        body = ErrorResponse(
            error=ERROR_MESSAGES.get(error.code, error.message),
            code=error.code.value,
            fallback=True if error.code in (ErrorCode.TIMEOUT, ErrorCode.INTERNAL_ERROR) else None,
        )

    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(by_alias=True, exclude_none=True, mode="json"),
        headers=headers,
    )


def _validation_error_code(exc: RequestValidationError) -> ErrorCode:
    for err in exc.errors():
        if err.get("type") == "string_too_long" and "message" in err.get("loc", ()):
            return ErrorCode.MESSAGE_TOO_LONG
    return ErrorCode.INVALID_REQUEST


def create_app(
    orchestrator: Optional[BookshelfOrchestrator] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Pre-built pipeline (tests inject one with fake clients)
        settings: Used to build the orchestrator when none is given

    Returns:
        Configured application
    """
    settings = settings or (orchestrator.settings if orchestrator else Settings())
    if orchestrator is None:
        orchestrator = BookshelfOrchestrator.from_settings(settings)

    app = FastAPI(title="Talking Bookshelf", version="1.0.0")
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept-Language"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.headers.get("x-forwarded-proto", request.url.scheme) == "https":
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        code = _validation_error_code(exc)
        return JSONResponse(
            status_code=400,
            content={"error": ERROR_MESSAGES[code], "code": code.value},
        )

    @app.exception_handler(BookshelfError)
    async def handle_bookshelf_error(request: Request, exc: BookshelfError):
        language = getattr(request.state, "language", settings.default_language)
        return error_response(exc, language)

    @app.post("/api/chat")
    async def chat(request: Request, body: ChatRequest):
        language = resolve_language(
            body.language,
            request.headers.get("accept-language", ""),
            supported=settings.supported_languages,
            default=settings.default_language,
        )
        request.state.language = language
        source = request.client.host if request.client else "unknown"
        cancel_event = threading.Event()

        try:
            reply = await run_in_threadpool(
                orchestrator.chat,
                body.message,
                source,
                book_id=body.book_id,
                session_id=body.session_id,
                language=language,
                cancel_event=cancel_event,
            )
        except asyncio.CancelledError:
            cancel_event.set()
            raise
        except RequestCancelledError:
            logger.info("Client disconnected, request abandoned")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except BookshelfError:
            raise
        except Exception:
            logger.exception("Unexpected error while handling chat")
            return error_response(BookshelfError("Internal error"), language)

        return reply.model_dump(by_alias=True, mode="json")

    @app.get("/api/books")
    def list_books(lang: Optional[str] = None):
        return [book.to_response().model_dump() for book in orchestrator.list_books(lang)]

    @app.get("/api/books/{book_id}")
    def get_book(book_id: str):
        book = orchestrator.get_book(book_id)
        if book is None:
            return JSONResponse(
                status_code=404,
                content={"error": "Book not found", "code": ErrorCode.BOOK_NOT_FOUND.value},
            )
        return book.to_response().model_dump()

    @app.get("/api/owner")
    def get_owner():
        owner = orchestrator.get_owner_info()
        if owner is None:
            return JSONResponse(status_code=404, content={"error": "Owner profile not found"})
        return owner.model_dump()

    @app.get("/health")
    def health():
        agent = "ready" if orchestrator.is_ready else "unavailable"
        return {
            "status": "healthy" if orchestrator.is_ready else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "agent": agent,
        }

    @app.get("/ready")
    def ready():
        if not orchestrator.is_ready:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "agent_not_initialized"},
            )
        return {"status": "ready"}

    return app
