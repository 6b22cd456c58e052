"""SQLite-backed session service for persistence across restarts."""

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Conversation, Turn
from .session_service import SessionService, SessionNotFoundError

logger = logging.getLogger(__name__)


class SQLiteSessionService(SessionService):
    """Session service storing conversations and turns in SQLite."""

    def __init__(self, db_path: str = "data/sessions.db"):
        """
        Initialize SQLite session service.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                app_name TEXT NOT NULL,
                user_id TEXT NOT NULL,
                session_id TEXT NOT NULL,
                state TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (app_name, user_id, session_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS turns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                app_name TEXT NOT NULL,
                user_id TEXT NOT NULL,
                session_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_turns_session "
            "ON turns(app_name, user_id, session_id)"
        )

        conn.commit()
        conn.close()
        logger.info(f"Session database initialized at {self.db_path}")

    def create(self, app_name, user_id, session_id=None, state=None):
        session_id = session_id or str(uuid.uuid4())
        now = datetime.now()
        conversation = Conversation(
            app_name=app_name,
            user_id=user_id,
            session_id=session_id,
            state=dict(state or {}),
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            self._delete_rows(cursor, app_name, user_id, session_id)
            cursor.execute(
                """
                INSERT INTO sessions (app_name, user_id, session_id, state, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (app_name, user_id, session_id, json.dumps(conversation.state),
                 now.isoformat(), now.isoformat())
            )
            conn.commit()
            conn.close()

        return conversation

    def get(self, app_name, user_id, session_id):
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()

            cursor.execute(
                "SELECT * FROM sessions WHERE app_name = ? AND user_id = ? AND session_id = ?",
                (app_name, user_id, session_id)
            )
            row = cursor.fetchone()
            if not row:
                conn.close()
                return None

            cursor.execute(
                """
                SELECT role, content, timestamp FROM turns
                WHERE app_name = ? AND user_id = ? AND session_id = ?
                ORDER BY position
                """,
                (app_name, user_id, session_id)
            )
            turn_rows = cursor.fetchall()
            conn.close()

        turns = [
            Turn(
                role=t["role"],
                content=t["content"],
                timestamp=datetime.fromisoformat(t["timestamp"]),
            )
            for t in turn_rows
        ]

        return Conversation(
            app_name=row["app_name"],
            user_id=row["user_id"],
            session_id=row["session_id"],
            turns=turns,
            state=json.loads(row["state"]) if row["state"] else {},
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def update(self, conversation):
        key = (conversation.app_name, conversation.user_id, conversation.session_id)
        now = datetime.now()

        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()

            cursor.execute(
                """
                UPDATE sessions SET state = ?, updated_at = ?
                WHERE app_name = ? AND user_id = ? AND session_id = ?
                """,
                (json.dumps(conversation.state), now.isoformat(), *key)
            )
            if cursor.rowcount == 0:
                conn.close()
                raise SessionNotFoundError(conversation.session_id)

            # Turns are append-only, so only rows past the stored count are new
            cursor.execute(
                "SELECT COUNT(*) FROM turns WHERE app_name = ? AND user_id = ? AND session_id = ?",
                key
            )
            stored = cursor.fetchone()[0]
            for position, turn in enumerate(conversation.turns[stored:], start=stored):
                cursor.execute(
                    """
                    INSERT INTO turns (app_name, user_id, session_id, position, role, content, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (*key, position, turn.role, turn.content, turn.timestamp.isoformat())
                )

            conn.commit()
            conn.close()

        return conversation.model_copy(deep=True, update={"updated_at": now})

    def delete(self, app_name, user_id, session_id):
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            deleted = self._delete_rows(cursor, app_name, user_id, session_id)
            conn.commit()
            conn.close()
        return deleted

    @staticmethod
    def _delete_rows(cursor: sqlite3.Cursor, app_name: str, user_id: str, session_id: str) -> bool:
        cursor.execute(
            "DELETE FROM turns WHERE app_name = ? AND user_id = ? AND session_id = ?",
            (app_name, user_id, session_id)
        )
        cursor.execute(
            "DELETE FROM sessions WHERE app_name = ? AND user_id = ? AND session_id = ?",
            (app_name, user_id, session_id)
        )
        return cursor.rowcount > 0
