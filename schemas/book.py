"""Book catalog schemas."""

from typing import Optional
from pydantic import BaseModel


class Book(BaseModel):
    """A book on the shelf, including the owner's private notes."""
    id: str
    title: str
    author: str
    isbn: str = ""
    cover: str = ""
    finished_at: str = ""
    private_notes: str = ""
    link: str = ""  # [item::title::id] reference ready for the model to reuse
    language: str = "ja"  # "ja" or "en"

    def reference(self) -> str:
        """Tagged reference the chat UI renders as a book link."""
        return f"[item::{self.title}::{self.id}]"

    def to_response(self) -> "BookResponse":
        """Public projection without private notes."""
        return BookResponse(
            id=self.id,
            title=self.title,
            author=self.author,
            isbn=self.isbn,
            cover=self.cover,
            finished_at=self.finished_at,
            language=self.language,
        )


class BookResponse(BaseModel):
    """Book as served by the REST API."""
    id: str
    title: str
    author: str
    isbn: str = ""
    cover: str = ""
    finished_at: str = ""
    language: str = ""


class BookReference(BaseModel):
    """A parsed [item::title::id] reference found in generated text."""
    title: str
    book_id: str
    raw: Optional[str] = None
