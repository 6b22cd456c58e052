"""Prompt assembly for each chat turn."""

from typing import Optional, Sequence

from schemas.book import Book
from security.sanitizer import Sanitizer
from .prompts import (
    LANGUAGE_DIRECTIVES,
    EXCLUSION_NOTICES,
    SELECTED_BOOK_CONTEXT,
    CORRECTION_BOOK_CONTEXT,
    CORRECTION_PROMPT_WITH_BOOK,
    CORRECTION_PROMPT_GENERAL,
    SYSTEM_PROMPT,
)

SEGMENT_SEPARATOR = "\n\n"


def _lang(language: str) -> str:
    return language if language in LANGUAGE_DIRECTIVES else "en"


def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def build_language_directive(language: str) -> str:
    """Language instruction; unknown codes fall back to English."""
    return LANGUAGE_DIRECTIVES[_lang(language)]


def build_exclusion_notice(excluded_ids: Sequence[str], language: str) -> str:
    if not excluded_ids:
        return ""
    return EXCLUSION_NOTICES[_lang(language)].format(book_ids=", ".join(excluded_ids))


def build_selected_book_context(book: Optional[Book], language: str) -> str:
    if book is None:
        return ""
    return SELECTED_BOOK_CONTEXT[_lang(language)].format(
        title=book.title, author=book.author, id=book.id
    )


def build_message_context(
    user_text: str,
    language: str,
    selected_book: Optional[Book] = None,
    prior_summary: str = "",
    excluded_ids: Sequence[str] = ()
) -> str:
    """
    Assemble the user-turn prompt.

    Segment order is fixed: exclusion notice, prior conversation summary,
    selected book, language directive, user text. Directives nearest the user
    message weigh most, so the language directive sits last among the
    injected segments.

    Args:
        user_text: Normalized user message
        language: Reply language code
        selected_book: Book pinned by the UI for this turn
        prior_summary: Transcript carried over from compaction
        excluded_ids: Book ids already recommended in this conversation

    Returns:
        Prompt text for the user turn
    """
    segments = [
        build_exclusion_notice(excluded_ids, language),
        prior_summary,
        build_selected_book_context(selected_book, language),
        build_language_directive(language),
        user_text,
    ]
    return SEGMENT_SEPARATOR.join(s for s in segments if s)


def build_correction_prompt(
    question: str,
    language: str,
    selected_book: Optional[Book],
    sanitizer: Sanitizer
) -> str:
    """
    Minimal prompt for the corrector.

    With a pinned book, the answer is grounded in that book's notes only.
    Without one, the model asks a follow-up question instead of recommending.
    """
    lang = _lang(language)
    if selected_book is not None:
        book_context = CORRECTION_BOOK_CONTEXT[lang].format(
            title=selected_book.title,
            id=selected_book.id,
            author=selected_book.author,
            notes=sanitizer.sanitize(selected_book.private_notes),
        )
        prompt = CORRECTION_PROMPT_WITH_BOOK[lang].format(
            book_context=book_context, question=question
        )
    else:
        prompt = CORRECTION_PROMPT_GENERAL[lang].format(question=question)

    return prompt + SEGMENT_SEPARATOR + build_language_directive(language)
