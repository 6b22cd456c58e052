"""Pydantic schemas for the Talking Bookshelf."""

from .book import Book, BookResponse, BookReference
from .chat import ChatRequest, ChatReply, ErrorResponse, Emotion, MAX_MESSAGE_LENGTH
from .portfolio import Portfolio, OwnerInfo, About, Project, Skills, SocialLink

__all__ = [
    "Book",
    "BookResponse",
    "BookReference",
    "ChatRequest",
    "ChatReply",
    "ErrorResponse",
    "Emotion",
    "MAX_MESSAGE_LENGTH",
    "Portfolio",
    "OwnerInfo",
    "About",
    "Project",
    "Skills",
    "SocialLink",
]
