"""In-memory book catalog loaded from JSON."""

import json
import logging
from pathlib import Path
from typing import Optional

from rapidfuzz import fuzz

from schemas.book import Book

logger = logging.getLogger(__name__)


class BookCatalog:
    """Read-only repository of the books on the shelf."""

    FUZZY_THRESHOLD = 85  # partial_ratio score for title/author matches

    def __init__(self, books: Optional[list[Book]] = None):
        """
        Initialize catalog.

        Args:
            books: Books to serve (use ``from_json`` to load a file)
        """
        self._books = list(books or [])
        self._by_id = {book.id: book for book in self._books}

    @classmethod
    def from_json(cls, path: Optional[str] = None) -> "BookCatalog":
        """Load books from a JSON array file (defaults to data/books.json)."""
        if path is None:
            path = Path(__file__).parent.parent / "data" / "books.json"

        path = Path(path)
        if not path.exists():
            logger.warning(f"Books file not found at {path}, catalog is empty")
            return cls([])

        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        books = [Book(**item) for item in raw]
        logger.info(f"Loaded {len(books)} books from {path}")
        return cls(books)

    def __len__(self) -> int:
        return len(self._books)

    def get_by_id(self, book_id: str) -> Optional[Book]:
        """Get a book by id."""
        return self._by_id.get(book_id)

    def exists(self, book_id: str) -> bool:
        return book_id in self._by_id

    def get_all(self) -> list[Book]:
        return list(self._books)

    def search(self, query: str) -> list[Book]:
        """
        Find books matching query in title, author, or notes.

        Substring matches come first; title/author fuzzy matches catch
        typos and partial titles.

        Args:
            query: Free-text query

        Returns:
            Matching books, substring hits before fuzzy hits
        """
        query_lower = query.strip().lower()
        if not query_lower:
            return []

        exact = []
        fuzzy = []
        for book in self._books:
            if (query_lower in book.title.lower()
                    or query_lower in book.author.lower()
                    or query_lower in book.private_notes.lower()):
                exact.append(book)
                continue

            score = max(
                fuzz.partial_ratio(query_lower, book.title.lower()),
                fuzz.partial_ratio(query_lower, book.author.lower()),
            )
            if score >= self.FUZZY_THRESHOLD:
                fuzzy.append((score, book))

        fuzzy.sort(key=lambda x: x[0], reverse=True)
        return exact + [book for _, book in fuzzy]

    def sorted_for_language(self, language: Optional[str]) -> list[Book]:
        """Books in the given language first; order otherwise preserved."""
        if not language:
            return self.get_all()
        return sorted(self._books, key=lambda b: b.language != language)
