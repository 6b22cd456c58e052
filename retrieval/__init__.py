"""Retrieval layer for the book catalog and owner portfolio."""

from .book_catalog import BookCatalog
from .portfolio import load_portfolio

__all__ = ["BookCatalog", "load_portfolio"]
