"""Chat request/response schemas."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

MAX_MESSAGE_LENGTH = 250


class Emotion(str, Enum):
    """Closed set of moods the bookshelf character can show."""
    IDLE = "idle"
    THINKING = "thinking"
    TALKING = "talking"
    SURPRISED = "surprised"
    GREETING = "greeting"


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    book_id: Optional[str] = Field(None, alias="bookId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    language: Optional[str] = None


class ChatReply(BaseModel):
    """Reply produced once per chat request."""
    model_config = ConfigDict(populate_by_name=True)

    response: str
    emotion: Emotion = Emotion.TALKING
    suggestions: list[str] = Field(default_factory=list)
    session_id: str = Field("", alias="sessionId")


class ErrorResponse(BaseModel):
    """Failure body; chat-shaped fields are set for throttling replies."""
    model_config = ConfigDict(populate_by_name=True)

    error: Optional[str] = None
    code: str
    fallback: Optional[bool] = None
    retry_after: Optional[int] = Field(None, alias="retryAfter")
    response: Optional[str] = None
    emotion: Optional[Emotion] = None
    suggestions: Optional[list[str]] = None
