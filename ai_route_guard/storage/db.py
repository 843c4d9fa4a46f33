"""
Database connection management.

Provides SQLite connection for audit persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "ai_route_guard.db"
IN_MEMORY_DB = ":memory:"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.

    Parent directories of ``db_path`` are created when missing.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    if str(path) != IN_MEMORY_DB:
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
