"""
Database connection management.

Provides the SQLite connection backing the transaction ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "token_telemetry.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite connection to the ledger.

    Rows are returned as ``sqlite3.Row`` so columns can be read by name.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with row access by column name
    """
    path = Path(db_path).expanduser()
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn
