from __future__ import annotations

import sqlite3


# Columns shared by the shared corpus (people) and user corpora (user_people)
PERSON_COLUMNS_DDL = (
    "  name TEXT NOT NULL,\n"
    "  email TEXT NOT NULL DEFAULT '',\n"
    "  position TEXT NOT NULL DEFAULT '',\n"
    "  company TEXT NOT NULL DEFAULT '',\n"
    "  phone TEXT NOT NULL DEFAULT '',\n"
    "  location TEXT NOT NULL DEFAULT '',\n"
    "  department TEXT NOT NULL DEFAULT '',\n"
    "  linkedin TEXT NOT NULL DEFAULT '',\n"
    "  website TEXT NOT NULL DEFAULT '',\n"
    "  additional_info TEXT NOT NULL DEFAULT '',\n"
    "  confidence REAL NOT NULL DEFAULT 0.5,\n"
    "  source TEXT NOT NULL DEFAULT '',\n"
    "  extraction_type TEXT NOT NULL DEFAULT 'general',\n"
    "  description TEXT,\n"
    "  status TEXT NOT NULL DEFAULT 'processed' CHECK (status IN ('pending', 'processed', 'failed')),\n"
    "  batch_id TEXT,\n"
    "  chunk_index INTEGER,\n"
    "  total_chunks INTEGER,\n"
    "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
    "  processing_started_at TEXT,\n"
    "  processing_completed_at TEXT"
)


def bootstrap(conn: sqlite3.Connection) -> None:
    """Create schema and indexes (idempotent)."""
    cur = conn.cursor()

    # Shared corpus
    cur.execute(
        "CREATE TABLE IF NOT EXISTS people (\n"
        "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
        f"{PERSON_COLUMNS_DDL}\n"
        ")"
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_people_batch ON people(batch_id, chunk_index);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_people_email ON people(email);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_people_name_company ON people(name, company);")

    # Per-user corpora, cross-referenced to the shared corpus
    cur.execute(
        "CREATE TABLE IF NOT EXISTS user_people (\n"
        "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
        "  user_id TEXT NOT NULL,\n"
        "  user_email TEXT,\n"
        "  is_duplicate_in_master INTEGER NOT NULL DEFAULT 0,\n"
        "  master_reference_id INTEGER,\n"
        f"{PERSON_COLUMNS_DDL},\n"
        "  FOREIGN KEY(master_reference_id) REFERENCES people(id) ON DELETE SET NULL\n"
        ")"
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_user_people_batch ON user_people(user_id, batch_id, chunk_index);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_user_people_email ON user_people(user_id, email);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_user_people_name_company ON user_people(user_id, name, company);")

    # Ledger of written chunks; the primary key stops a chunk being written twice
    cur.execute(
        "CREATE TABLE IF NOT EXISTS batch_chunks (\n"
        "  scope_key TEXT NOT NULL,\n"
        "  batch_id TEXT NOT NULL,\n"
        "  chunk_index INTEGER NOT NULL,\n"
        "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
        "  PRIMARY KEY (scope_key, batch_id, chunk_index)\n"
        ")"
    )

    # Batches whose analysis finished, even when nothing was stored for them
    cur.execute(
        "CREATE TABLE IF NOT EXISTS batches (\n"
        "  scope_key TEXT NOT NULL,\n"
        "  batch_id TEXT NOT NULL,\n"
        "  created_at TEXT NOT NULL DEFAULT (datetime('now')),\n"
        "  PRIMARY KEY (scope_key, batch_id)\n"
        ")"
    )

    # Background jobs (only used by the durable job store)
    cur.execute(
        "CREATE TABLE IF NOT EXISTS background_jobs (\n"
        "  id TEXT PRIMARY KEY,\n"
        "  source_path TEXT NOT NULL,\n"
        "  extraction_type TEXT NOT NULL DEFAULT 'general',\n"
        "  source TEXT NOT NULL DEFAULT '',\n"
        "  description TEXT,\n"
        "  status TEXT NOT NULL DEFAULT 'pending',\n"
        "  total_chunks INTEGER NOT NULL,\n"
        "  processed_chunks INTEGER NOT NULL DEFAULT 0,\n"
        "  created_at TEXT NOT NULL,\n"
        "  started_at TEXT,\n"
        "  completed_at TEXT,\n"
        "  error_message TEXT\n"
        ")"
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_background_jobs_status ON background_jobs(status);")

    conn.commit()
