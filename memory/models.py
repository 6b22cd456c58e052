"""Memory data models."""

from datetime import datetime
from typing import Any, Dict, List, Literal
from pydantic import BaseModel, ConfigDict, Field


class Turn(BaseModel):
    """A single turn in a conversation. Immutable once appended."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class Conversation(BaseModel):
    """A conversation session owned by one user."""
    app_name: str
    user_id: str
    session_id: str
    turns: List[Turn] = Field(default_factory=list)
    state: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def turn_count(self) -> int:
        return len(self.turns)
