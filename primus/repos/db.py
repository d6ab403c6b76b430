"""Database initialization and connection management.

Runs migrations on first boot, provides connection factory.
"""

import pathlib
import sqlite3


_MIGRATION_DIR = pathlib.Path(__file__).resolve().parent.parent.parent / "db" / "migrations"

# (migration file, table it creates), applied in order
_MIGRATIONS = (
    ("001_initial_schema.sql", "analysis_history"),
    ("002_conversations.sql", "conversations"),
)


def init_db(db_path: str) -> None:
    """Initialize the database by running any migration not yet applied.

    Creates the parent directory of *db_path* when needed.  Safe to call
    on every boot.

    Args:
        db_path: Path to the SQLite database file.
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        for filename, table in _MIGRATIONS:
            cur = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (table,),
            )
            if cur.fetchone() is None:
                sql = (_MIGRATION_DIR / filename).read_text(encoding="utf-8")
                conn.executescript(sql)
    finally:
        conn.close()


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
