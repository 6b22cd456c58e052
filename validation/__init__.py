"""Output validation for generated replies."""

from .base import (
    ValidationInput,
    ValidationResult,
    Validator,
    extract_references,
    extract_book_ids,
)
from .leak import LeakValidator
from .references import ReferenceIntegrityValidator
from .corrector import Corrector, fallback_message
from .pipeline import ValidationPipeline

__all__ = [
    "ValidationInput",
    "ValidationResult",
    "Validator",
    "extract_references",
    "extract_book_ids",
    "LeakValidator",
    "ReferenceIntegrityValidator",
    "Corrector",
    "fallback_message",
    "ValidationPipeline",
]
