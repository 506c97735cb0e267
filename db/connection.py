from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from db import schema


def get_connection(db_path: str, timeout: Optional[float] = 30.0) -> sqlite3.Connection:
    """Open a SQLite connection shared by request handling and the job ticker.

    - WAL journal so the ticker and synchronous extractions block each other less
    - foreign_keys ON to enforce integrity
    - check_same_thread off; callers serialize access through the gateway lock
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=timeout or 30.0, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def open_database(db_path: str) -> sqlite3.Connection:
    """Connect and make sure the schema exists."""
    conn = get_connection(db_path)
    schema.bootstrap(conn)
    return conn
