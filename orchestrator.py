"""Conversation request pipeline for the talking bookshelf."""

import logging
import threading
import time
from typing import List, Optional

from config.settings import Settings
from errors import BookNotFoundError, ServiceUnavailableError
from schemas.book import Book
from schemas.chat import ChatReply
from schemas.portfolio import OwnerInfo, Portfolio

# Input defense
from security.normalizer import normalize
from security.injection_gate import InjectionGate
from security.sanitizer import Sanitizer
from security.signatures import load_signatures

# Data
from retrieval.book_catalog import BookCatalog
from retrieval.portfolio import load_portfolio

# LLM components
from llm.base_client import Message
from llm.factory import create_llm_client, create_assist_client, LLMProvider
from llm.gateway import ModelGateway
from react.tools import build_bookshelf_tools

# Memory components
from memory.session_service import InMemorySessionService
from memory.sqlite_store import SQLiteSessionService
from memory.session_store import SessionStore
from memory.recommendation_memory import RecommendationMemory

# Prompting, parsing, validation
from agents.context_builder import build_message_context, build_system_prompt
from agents.response_parser import parse_response
from validation import (
    Corrector,
    LeakValidator,
    ReferenceIntegrityValidator,
    ValidationInput,
    ValidationPipeline,
    extract_book_ids,
)
from ratelimit.limiter import RateLimiter
from utils.text import truncate_for_log

logger = logging.getLogger(__name__)


class BookshelfOrchestrator:
    """
    Runs one chat turn end to end.

    Order: normalize, injection gate, pinned-book check, availability, rate
    limit, session compaction, prompt assembly, generation, parsing,
    validation, then history and recommendation memory updates. Rejections
    before the rate limiter cost no quota and mutate nothing.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: BookCatalog,
        injection_gate: InjectionGate,
        sanitizer: Sanitizer,
        session_store: SessionStore,
        recommendation_memory: RecommendationMemory,
        rate_limiter: RateLimiter,
        gateway: Optional[ModelGateway] = None,
        validation_pipeline: Optional[ValidationPipeline] = None,
        portfolio: Optional[Portfolio] = None
    ):
        self.settings = settings
        self.catalog = catalog
        self.injection_gate = injection_gate
        self.sanitizer = sanitizer
        self.session_store = session_store
        self.recommendation_memory = recommendation_memory
        self.rate_limiter = rate_limiter
        self.gateway = gateway
        self.validation_pipeline = validation_pipeline
        self.portfolio = portfolio

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BookshelfOrchestrator":
        """
        Wire all components from settings.

        Without an API key for the configured provider the orchestrator is
        still built, but chat answers SERVICE_UNAVAILABLE.
        """
        settings = settings or Settings()

        signatures = load_signatures(settings.resolve_path(settings.signatures_path))
        sanitizer = Sanitizer(signatures.compiled("instruction_patterns"))
        catalog = BookCatalog.from_json(settings.resolve_path(settings.books_path))
        portfolio = load_portfolio(settings.resolve_path(settings.portfolio_path))

        gateway = cls._init_gateway(settings, catalog, portfolio, sanitizer)
        validation_pipeline = None
        if gateway is not None:
            validation_pipeline = build_validation_pipeline(signatures, catalog, sanitizer, gateway)

        return cls(
            settings=settings,
            catalog=catalog,
            injection_gate=InjectionGate(signatures.compiled("injection_patterns")),
            sanitizer=sanitizer,
            session_store=cls._init_session_store(settings),
            recommendation_memory=RecommendationMemory(catalog.exists),
            rate_limiter=RateLimiter.from_settings(settings),
            gateway=gateway,
            validation_pipeline=validation_pipeline,
            portfolio=portfolio,
        )

    @staticmethod
    def _init_gateway(settings, catalog, portfolio, sanitizer) -> Optional[ModelGateway]:
        """Initialize the model gateway based on settings."""
        api_key = settings.get_llm_api_key()

        if not api_key:
            logger.warning(
                f"No API key for {settings.llm_provider}. "
                "Chat is disabled until the service is restarted with credentials."
            )
            return None

        try:
            provider = LLMProvider(settings.llm_provider)
        except ValueError:
            logger.error(f"Unsupported LLM provider: {settings.llm_provider}")
            return None

        primary = create_llm_client(provider, api_key=api_key, model=settings.llm_model)
        assist = create_assist_client(provider, api_key=api_key, model=settings.assist_model)

        return ModelGateway(
            primary_client=primary,
            assist_client=assist,
            tools=build_bookshelf_tools(catalog, portfolio, sanitizer),
            system_prompt=build_system_prompt(),
            generate_temperature=settings.generate_temperature,
            generate_max_tokens=settings.generate_max_tokens,
            assist_temperature=settings.assist_temperature,
            assist_max_tokens=settings.assist_max_tokens,
            max_tool_iterations=settings.max_tool_iterations,
            call_timeout=settings.call_timeout_seconds,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff_seconds,
        )

    @staticmethod
    def _init_session_store(settings: Settings) -> SessionStore:
        """Initialize session storage."""
        if settings.session_backend == "sqlite":
            service = SQLiteSessionService(db_path=str(settings.resolve_path(settings.db_path)))
            logger.info(f"Session persistence enabled: {settings.db_path}")
        else:
            service = InMemorySessionService()

        return SessionStore(
            service,
            app_name=settings.app_name,
            recent_turns_to_keep=settings.recent_turns_to_keep,
            turn_chars=settings.transcript_turn_chars,
        )

    @property
    def is_ready(self) -> bool:
        return self.gateway is not None and self.validation_pipeline is not None

    def chat(
        self,
        message: str,
        source: str,
        book_id: Optional[str] = None,
        session_id: Optional[str] = None,
        language: str = "en",
        cancel_event: Optional[threading.Event] = None
    ) -> ChatReply:
        """
        Answer one user message.

        Args:
            message: Raw user text
            source: Client identity for rate limiting (IP address)
            book_id: Book pinned by the UI
            session_id: Conversation to continue; missing ids are created
            language: Resolved reply language
            cancel_event: Set when the client disconnects

        Returns:
            Validated reply with mood, suggestions and the session id

        Raises:
            BookshelfError: Input, availability, throttling or upstream failure
            RequestCancelledError: The client went away mid-request
        """
        text = normalize(message, self.settings.unicode_form, self.settings.max_message_length)

        if self.injection_gate.check(text):
            return self.injection_gate.refusal(language, session_id or "")

        selected_book = self._get_selected_book(book_id)

        if not self.is_ready:
            raise ServiceUnavailableError("Chat service is not available")

        self.rate_limiter.check(source)

        deadline = time.monotonic() + self.settings.request_timeout_seconds
        user_id = f"user_{source}"
        session_id = self.session_store.ensure_session(user_id, session_id)
        self.session_store.compact_if_needed(user_id, session_id)

        excluded_ids = self.recommendation_memory.get(session_id)
        prompt = build_message_context(
            text,
            language,
            selected_book=selected_book,
            prior_summary=self.session_store.get_recent_conversation(user_id, session_id),
            excluded_ids=excluded_ids,
        )
        history = [
            Message(role=turn.role, content=turn.content)
            for turn in self.session_store.get_turns(user_id, session_id)
        ]

        logger.info(f"Chat [{session_id}] lang={language} book={book_id or '-'}: {truncate_for_log(text)}")
        raw = self.gateway.generate(prompt, history, cancel_event=cancel_event, deadline=deadline)
        parsed = parse_response(raw)

        validated = self.validation_pipeline.validate(
            ValidationInput(
                question=text,
                response=parsed.response,
                book_id=book_id,
                language=language,
                previous_book_ids=excluded_ids,
            ),
            cancel_event=cancel_event,
            deadline=deadline,
        )
        # Corrected text may carry its own tags; only the body is kept
        final_text = parse_response(validated).response

        self.session_store.append_exchange(user_id, session_id, text, final_text)
        self.recommendation_memory.merge(session_id, extract_book_ids(final_text))

        return ChatReply(
            response=final_text,
            emotion=parsed.emotion,
            suggestions=parsed.suggestions,
            session_id=session_id,
        )

    def _get_selected_book(self, book_id: Optional[str]) -> Optional[Book]:
        if not book_id:
            return None
        book = self.catalog.get_by_id(book_id)
        if book is None:
            raise BookNotFoundError("Book not found")
        return book

    def list_books(self, language: Optional[str] = None) -> List[Book]:
        """Books with the given language first."""
        return self.catalog.sorted_for_language(language)

    def get_book(self, book_id: str) -> Optional[Book]:
        return self.catalog.get_by_id(book_id)

    def get_owner_info(self) -> Optional[OwnerInfo]:
        if self.portfolio is None:
            return None
        about = self.portfolio.about
        return OwnerInfo(name=about.name, tagline=about.tagline, social=self.portfolio.social)


def build_validation_pipeline(signatures, catalog, sanitizer, gateway) -> ValidationPipeline:
    """Leak check first, then reference integrity."""
    return ValidationPipeline(
        validators=[
            LeakValidator(
                patterns=signatures.compiled("leak_patterns"),
                keywords=signatures.leak_keywords,
                echo_phrases=signatures.echo_phrases,
            ),
            ReferenceIntegrityValidator(catalog),
        ],
        corrector=Corrector(gateway, catalog, sanitizer),
    )
