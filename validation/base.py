"""Validator contract and shared types."""

import re
from abc import ABC, abstractmethod
from typing import List, Optional
from pydantic import BaseModel, Field

from schemas.book import BookReference

REFERENCE_PATTERN = re.compile(r"\[item::(.+?)::([^\]]+)\]")


class ValidationInput(BaseModel):
    """Everything a validator may look at for one reply."""
    question: str
    response: str
    book_id: Optional[str] = None
    language: str = "en"
    previous_book_ids: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """
    Outcome of one validator.

    Exactly one of: valid; invalid and fatal; invalid with a corrected text
    ready to use; invalid and needing regeneration.
    """
    is_valid: bool
    reason: str = ""
    corrected: str = ""
    fatal: bool = False
    needs_regeneration: bool = False

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        """Invalid; the reply has to be regenerated."""
        return cls(is_valid=False, reason=reason, needs_regeneration=True)

    @classmethod
    def fail_fatal(cls, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason, fatal=True)

    @classmethod
    def fail_with_correction(cls, reason: str, corrected: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason, corrected=corrected)


class Validator(ABC):
    """One check on a generated reply."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def validate(self, data: ValidationInput) -> ValidationResult:
        """Check a reply. Must not raise for ordinary bad input."""
        pass


def extract_references(text: str) -> List[BookReference]:
    """All [item::title::id] references in order of appearance."""
    return [
        BookReference(title=m.group(1), book_id=m.group(2), raw=m.group(0))
        for m in REFERENCE_PATTERN.finditer(text or "")
    ]


def extract_book_ids(text: str) -> List[str]:
    return [ref.book_id for ref in extract_references(text)]
