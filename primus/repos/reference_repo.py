"""Reference repository — per-user snapshots of recent analyses.

The explainer reads the newest active snapshot or one looked up by key.  Only the
last ``MAX_ACTIVE_REFERENCES`` per user stay active.
"""

import json
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from primus.repos.db import get_connection

MAX_ACTIVE_REFERENCES = 5

_KEY_ALPHABET = string.ascii_uppercase + string.digits


def new_reference_key() -> str:
    """``A`` + epoch milliseconds + five random characters."""
    suffix = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(5))
    return f"A{int(time.time() * 1000)}{suffix}"


def _decode(row) -> dict:
    item = dict(row)
    item["full_analysis"] = json.loads(item["full_analysis"])
    item["is_active"] = bool(item["is_active"])
    return item


class ReferenceRepo:
    """Data access layer for the analysis_references table.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save_reference(
        self,
        user_id: str,
        analysis_id: Optional[int],
        snapshot: dict,
    ) -> str:
        """Store *snapshot* and return its reference key.

        Older references beyond the newest ``MAX_ACTIVE_REFERENCES - 1``
        are deactivated before the insert.
        """
        key = new_reference_key()
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                UPDATE analysis_references
                SET is_active = 0
                WHERE user_id = ?
                  AND id NOT IN (
                      SELECT id FROM analysis_references
                      WHERE user_id = ? AND is_active = 1
                      ORDER BY id DESC
                      LIMIT ?
                  )
                """,
                (str(user_id), str(user_id), MAX_ACTIVE_REFERENCES - 1),
            )
            conn.execute(
                """
                INSERT INTO analysis_references
                    (user_id, analysis_id, reference_key, full_analysis,
                     is_active, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                """,
                (
                    str(user_id),
                    analysis_id,
                    key,
                    json.dumps(snapshot, default=str),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return key
        finally:
            conn.close()

    def get_last(self, user_id: str) -> Optional[dict]:
        """Newest active reference for the user, or ``None``."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                """
                SELECT * FROM analysis_references
                WHERE user_id = ? AND is_active = 1
                ORDER BY id DESC
                LIMIT 1
                """,
                (str(user_id),),
            ).fetchone()
            return _decode(row) if row else None
        finally:
            conn.close()

    def get_by_key(self, reference_key: str) -> Optional[dict]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM analysis_references WHERE reference_key = ?",
                (reference_key,),
            ).fetchone()
            return _decode(row) if row else None
        finally:
            conn.close()
