"""Session service contract and the in-memory implementation."""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .models import Conversation

SessionKey = Tuple[str, str, str]


class SessionNotFoundError(KeyError):
    """No session exists for the (app, user, session) triple."""


class SessionService(ABC):
    """Create/get/update/delete conversations by (app, user, session)."""

    @abstractmethod
    def create(
        self,
        app_name: str,
        user_id: str,
        session_id: Optional[str] = None,
        state: Optional[Dict[str, Any]] = None
    ) -> Conversation:
        """Create a session; a new id is minted when none is given."""
        pass

    @abstractmethod
    def get(self, app_name: str, user_id: str, session_id: str) -> Optional[Conversation]:
        """Get a copy of a session, or None."""
        pass

    @abstractmethod
    def update(self, conversation: Conversation) -> Conversation:
        """Replace the stored session with the given one.

        Raises:
            SessionNotFoundError: The session does not exist
        """
        pass

    @abstractmethod
    def delete(self, app_name: str, user_id: str, session_id: str) -> bool:
        """Delete a session. Returns False when it did not exist."""
        pass


class InMemorySessionService(SessionService):
    """Process-lifetime session map guarded by a lock.

    Callers always receive deep copies, so a Conversation in hand is never
    mutated by another thread.
    """

    def __init__(self):
        self._sessions: Dict[SessionKey, Conversation] = {}
        self._lock = threading.Lock()

    def create(self, app_name, user_id, session_id=None, state=None):
        session_id = session_id or str(uuid.uuid4())
        conversation = Conversation(
            app_name=app_name,
            user_id=user_id,
            session_id=session_id,
            state=dict(state or {}),
        )
        with self._lock:
            self._sessions[(app_name, user_id, session_id)] = conversation
        return conversation.model_copy(deep=True)

    def get(self, app_name, user_id, session_id):
        with self._lock:
            conversation = self._sessions.get((app_name, user_id, session_id))
            return conversation.model_copy(deep=True) if conversation else None

    def update(self, conversation):
        key = (conversation.app_name, conversation.user_id, conversation.session_id)
        stored = conversation.model_copy(deep=True, update={"updated_at": datetime.now()})
        with self._lock:
            if key not in self._sessions:
                raise SessionNotFoundError(conversation.session_id)
            self._sessions[key] = stored
        return stored.model_copy(deep=True)

    def delete(self, app_name, user_id, session_id):
        with self._lock:
            return self._sessions.pop((app_name, user_id, session_id), None) is not None
