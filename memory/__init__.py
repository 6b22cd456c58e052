"""Conversation sessions and recommendation memory."""

from .models import Conversation, Turn
from .session_service import SessionService, InMemorySessionService, SessionNotFoundError
from .sqlite_store import SQLiteSessionService
from .session_store import SessionStore, RECENT_CONVERSATION_KEY
from .recommendation_memory import RecommendationMemory

__all__ = [
    "Conversation",
    "Turn",
    "SessionService",
    "InMemorySessionService",
    "SessionNotFoundError",
    "SQLiteSessionService",
    "SessionStore",
    "RECENT_CONVERSATION_KEY",
    "RecommendationMemory",
]
