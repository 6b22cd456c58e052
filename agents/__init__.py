"""Prompt assembly and response parsing for the bookshelf character."""

from .context_builder import (
    build_message_context,
    build_correction_prompt,
    build_language_directive,
    build_system_prompt,
)
from .language import resolve_language
from .response_parser import ParsedResponse, parse_response

__all__ = [
    "build_message_context",
    "build_correction_prompt",
    "build_language_directive",
    "build_system_prompt",
    "resolve_language",
    "ParsedResponse",
    "parse_response",
]
