"""Local SQLite-backed conversation store."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from chat_playground.errors import PersistenceError
from chat_playground.types import Conversation

from .base import ConversationStore

_logger = logging.getLogger(__name__)


class SQLiteConversationStore(ConversationStore):
    """One row per conversation holding its JSON document.

    ``save()`` replaces the stored list in a single transaction so the
    stored order always matches the in-memory order.
    """

    def __init__(self, db_path: str = "~/.chat_playground/conversations.db"):
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(path)
        self._conn = sqlite3.connect(self.db_path)
        self._init_schema()

    def _init_schema(self):
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                document TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_conv_position ON conversations(position);
        """)
        self._conn.commit()

    async def load(self) -> list[Conversation]:
        try:
            rows = self._conn.execute(
                "SELECT document FROM conversations ORDER BY position"
            ).fetchall()
            return [Conversation.model_validate_json(doc) for (doc,) in rows]
        except (sqlite3.Error, ValidationError) as e:
            raise PersistenceError(f"loading conversations failed: {e}") from e

    async def save(self, conversations: list[Conversation]) -> bool:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM conversations")
                self._conn.executemany(
                    "INSERT INTO conversations (id, position, document, updated_at) "
                    "VALUES (?, ?, ?, ?)",
                    [
                        (c.id, pos, c.model_dump_json(by_alias=True), c.updated_at.isoformat())
                        for pos, c in enumerate(conversations)
                    ],
                )
        except sqlite3.Error as e:
            _logger.warning("Saving conversations to %s failed: %s", self.db_path, e)
            return False
        return True

    async def close(self) -> None:
        self._conn.close()
