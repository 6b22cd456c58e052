"""Checks that every book reference names a real book."""

import logging

from retrieval.book_catalog import BookCatalog
from .base import ValidationInput, ValidationResult, Validator, extract_references

logger = logging.getLogger(__name__)


class ReferenceIntegrityValidator(Validator):
    """
    Fails on hallucinated references.

    Each [item::<title>::<id>] must name an existing id whose catalog title
    equals <title> exactly. When a book is pinned, the reply must reference
    that book.
    """

    def __init__(self, catalog: BookCatalog):
        self.catalog = catalog

    def validate(self, data: ValidationInput) -> ValidationResult:
        references = extract_references(data.response)

        for ref in references:
            book = self.catalog.get_by_id(ref.book_id)
            if book is None:
                logger.warning(f"[{self.name}] Hallucinated book id '{ref.book_id}'")
                return ValidationResult.fail(f"book id '{ref.book_id}' does not exist")

            if book.title != ref.title:
                logger.warning(
                    f"[{self.name}] Title mismatch for {ref.book_id}: "
                    f"'{ref.title}' vs '{book.title}'"
                )
                return ValidationResult.fail(
                    f"title mismatch for {ref.book_id}: expected '{book.title}', got '{ref.title}'"
                )

        if data.book_id and not any(ref.book_id == data.book_id for ref in references):
            book = self.catalog.get_by_id(data.book_id)
            if book is not None:
                logger.info(f"[{self.name}] Selected book '{book.title}' not mentioned")
                return ValidationResult.fail(f"selected book '{book.title}' not mentioned")

        return ValidationResult.ok()
