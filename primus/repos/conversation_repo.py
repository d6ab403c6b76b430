"""Conversation repository — chat message history per user."""

import json
from datetime import datetime, timezone
from typing import Optional

from primus.repos.db import get_connection

USER_MESSAGE = "user"
BOT_MESSAGE = "bot"


class ConversationRepo:
    """Data access layer for the conversations table.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save_message(
        self,
        user_id: str,
        message_type: str,
        content: str,
        metadata: Optional[dict] = None,
    ) -> int:
        """Insert one message and return its ``id``."""
        if message_type not in (USER_MESSAGE, BOT_MESSAGE):
            raise ValueError(f"Unknown message type: {message_type!r}")
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO conversations
                    (user_id, message_type, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(user_id),
                    message_type,
                    content,
                    json.dumps(metadata or {}, default=str),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def get_recent_history(self, user_id: str, limit: int = 10) -> list[dict]:
        """Last *limit* messages for the user, oldest first."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """
                SELECT * FROM conversations
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (str(user_id), limit),
            ).fetchall()
        finally:
            conn.close()

        history = []
        for row in reversed(rows):
            item = dict(row)
            item["metadata"] = json.loads(item["metadata"])
            history.append(item)
        return history

    def get_stats(self, user_id: str) -> dict:
        """Message counts and first/last activity for the user."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_messages,
                    SUM(CASE WHEN message_type = 'user' THEN 1 ELSE 0 END) AS user_messages,
                    SUM(CASE WHEN message_type = 'bot' THEN 1 ELSE 0 END) AS bot_messages,
                    MIN(created_at) AS first_message,
                    MAX(created_at) AS last_activity
                FROM conversations
                WHERE user_id = ?
                """,
                (str(user_id),),
            ).fetchone()
        finally:
            conn.close()

        stats = dict(row)
        stats["user_messages"] = stats["user_messages"] or 0
        stats["bot_messages"] = stats["bot_messages"] or 0
        return stats
