"""Conversation history with threshold-triggered compaction."""

import logging
import threading
from typing import List, Optional

from utils.text import truncate
from .models import Conversation, Turn
from .session_service import SessionService

logger = logging.getLogger(__name__)

RECENT_CONVERSATION_KEY = "recent_conversation"
TRANSCRIPT_HEADER = "[Recent conversation]"

ROLE_LABELS = {
    "user": "User",
    "assistant": "Assistant",
}


class SessionStore:
    """
    Keeps per-session history short by swapping long sessions for a transcript.

    Once a session holds 2 × recent_turns_to_keep turns, the most recent turns
    are rendered into a plain-text transcript, the session is deleted, and a
    fresh one is created under the same id with the transcript in its state.
    Callers never see the id change.
    """

    def __init__(
        self,
        service: SessionService,
        app_name: str = "talking_bookshelf",
        recent_turns_to_keep: int = 3,
        turn_chars: int = 500
    ):
        """
        Initialize session store.

        Args:
            service: Backing session service
            app_name: Application namespace for session keys
            recent_turns_to_keep: N; compaction fires at 2N turns
            turn_chars: Per-turn character cap inside the transcript
        """
        self.service = service
        self.app_name = app_name
        self.recent_turns_to_keep = recent_turns_to_keep
        self.turn_chars = turn_chars
        self._lock = threading.Lock()

    @property
    def compaction_threshold(self) -> int:
        return 2 * self.recent_turns_to_keep

    def create_session(self, user_id: str) -> str:
        """Create a new session and return its id."""
        conversation = self.service.create(self.app_name, user_id)
        logger.info(f"Created session {conversation.session_id}")
        return conversation.session_id

    def ensure_session(self, user_id: str, session_id: Optional[str]) -> str:
        """
        Return a usable session id for this request.

        A missing id mints a new session. An id that no longer exists (expired
        or from a restarted process) is recreated under the same value, so the
        client keeps its id.
        """
        if not session_id:
            return self.create_session(user_id)

        with self._lock:
            if self.service.get(self.app_name, user_id, session_id) is None:
                logger.info(f"Session {session_id} not found, recreating")
                self.service.create(self.app_name, user_id, session_id=session_id)
        return session_id

    def get_turns(self, user_id: str, session_id: str) -> List[Turn]:
        conversation = self.service.get(self.app_name, user_id, session_id)
        return list(conversation.turns) if conversation else []

    def get_recent_conversation(self, user_id: str, session_id: str) -> str:
        """Transcript carried over by the last compaction, or ''."""
        conversation = self.service.get(self.app_name, user_id, session_id)
        if conversation is None:
            return ""
        return conversation.state.get(RECENT_CONVERSATION_KEY, "")

    def compact_if_needed(self, user_id: str, session_id: str) -> bool:
        """
        Compact the session when it reached the threshold.

        Args:
            user_id: Session owner
            session_id: Session to check

        Returns:
            True when the session was replaced
        """
        with self._lock:
            conversation = self.service.get(self.app_name, user_id, session_id)
            if conversation is None or conversation.turn_count < self.compaction_threshold:
                return False

            transcript = self.render_transcript(
                conversation.turns[-self.compaction_threshold:]
            )
            self.service.delete(self.app_name, user_id, session_id)
            self.service.create(
                self.app_name,
                user_id,
                session_id=session_id,
                state={RECENT_CONVERSATION_KEY: transcript},
            )

        logger.info(
            f"Compacted session {session_id} ({conversation.turn_count} turns, "
            f"{len(transcript)} chars carried over)"
        )
        return True

    def render_transcript(self, turns: List[Turn]) -> str:
        lines = [TRANSCRIPT_HEADER]
        for turn in turns:
            label = ROLE_LABELS.get(turn.role, turn.role)
            lines.append(f"{label}: {truncate(turn.content, self.turn_chars)}")
        return "\n".join(lines)

    def append_exchange(
        self,
        user_id: str,
        session_id: str,
        user_text: str,
        assistant_text: str
    ) -> Conversation:
        """Append one user turn and one assistant turn."""
        with self._lock:
            conversation = self.service.get(self.app_name, user_id, session_id)
            if conversation is None:
                conversation = self.service.create(self.app_name, user_id, session_id=session_id)

            conversation.turns.extend([
                Turn(role="user", content=user_text),
                Turn(role="assistant", content=assistant_text),
            ])
            return self.service.update(conversation)
