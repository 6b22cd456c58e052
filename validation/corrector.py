"""Regenerates a reply after validation failed."""

import logging
import threading
from typing import Optional

from agents.context_builder import build_correction_prompt
from agents.prompts import FALLBACK_MESSAGES
from llm.errors import RequestCancelledError
from retrieval.book_catalog import BookCatalog
from security.sanitizer import Sanitizer
from errors import BookshelfError

logger = logging.getLogger(__name__)


def fallback_message(language: str) -> str:
    return FALLBACK_MESSAGES.get(language, FALLBACK_MESSAGES["en"])


class Corrector:
    """
    One assist-tier call built from the question, the pinned book's notes and
    the language directive. Any failure or empty output yields the apology.
    """

    def __init__(self, gateway, catalog: BookCatalog, sanitizer: Sanitizer):
        """
        Args:
            gateway: ModelGateway providing the assist tier
            catalog: Source of the pinned book
            sanitizer: Applied to the notes before prompting
        """
        self.gateway = gateway
        self.catalog = catalog
        self.sanitizer = sanitizer

    def generate(
        self,
        question: str,
        book_id: Optional[str],
        language: str,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None
    ) -> str:
        """
        Produce replacement text.

        Raises:
            RequestCancelledError: The caller went away
        """
        book = self.catalog.get_by_id(book_id) if book_id else None
        prompt = build_correction_prompt(question, language, book, self.sanitizer)

        try:
            text = self.gateway.assist(prompt, cancel_event=cancel_event, deadline=deadline)
        except RequestCancelledError:
            raise
        except BookshelfError as e:
            logger.warning(f"Correction failed, using fallback: {e}")
            return fallback_message(language)

        text = (text or "").strip()
        if not text:
            logger.warning("Correction returned empty text, using fallback")
            return fallback_message(language)
        return text
