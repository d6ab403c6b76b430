"""Analysis repository — SQLite CRUD for the analysis_history table."""

from datetime import datetime, timezone
from typing import Optional

from primus.repos.db import get_connection
from primus.strategy.models import CombinedAnalysis


class AnalysisRepo:
    """Data access layer for flattened analysis summaries.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def log_analysis(
        self,
        user_id: str,
        analysis: CombinedAnalysis,
        market_category: Optional[str] = None,
    ) -> int:
        """Insert a summary row for *analysis* and return its ``id``.

        Confidence is stored in percent.
        """
        zone = analysis.primary_zone
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO analysis_history
                    (user_id, pair, strategy, market_category, signal,
                     confidence, is_valid, trend, pattern, zone_low,
                     zone_high, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(user_id),
                    analysis.pair,
                    analysis.strategy,
                    market_category,
                    analysis.signal,
                    round(analysis.confidence * 100, 2),
                    int(analysis.valid),
                    analysis.trend,
                    analysis.pattern or None,
                    zone.price_low if zone else None,
                    zone.price_high if zone else None,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_history(self, user_id: str, limit: int = 10) -> list[dict]:
        """Return the user's most recent analyses, newest first."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """
                SELECT * FROM analysis_history
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (str(user_id), limit),
            ).fetchall()
            history = []
            for row in rows:
                item = dict(row)
                item["is_valid"] = bool(item["is_valid"])
                history.append(item)
            return history
        finally:
            conn.close()

    def get_user_stats(self, user_id: str) -> dict:
        """Aggregate counts and average confidence for one user."""
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_analyses,
                    COALESCE(SUM(CASE WHEN is_valid = 1 THEN 1 ELSE 0 END), 0)
                        AS valid_setups,
                    COALESCE(SUM(CASE WHEN signal = 'buy' THEN 1 ELSE 0 END), 0)
                        AS buy_signals,
                    COALESCE(SUM(CASE WHEN signal = 'sell' THEN 1 ELSE 0 END), 0)
                        AS sell_signals,
                    AVG(confidence) AS avg_confidence,
                    MIN(created_at) AS first_analysis,
                    MAX(created_at) AS last_analysis
                FROM analysis_history
                WHERE user_id = ?
                """,
                (str(user_id),),
            ).fetchone()
            stats = dict(row)
            if stats["avg_confidence"] is not None:
                stats["avg_confidence"] = round(stats["avg_confidence"], 2)
            return stats
        finally:
            conn.close()
