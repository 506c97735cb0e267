from __future__ import annotations

import sqlite3
from typing import List, Optional

from models import BackgroundJob


COLUMNS = [
    "id",
    "source_path",
    "extraction_type",
    "source",
    "description",
    "status",
    "total_chunks",
    "processed_chunks",
    "created_at",
    "started_at",
    "completed_at",
    "error_message",
]


class JobsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert(self, job: BackgroundJob) -> None:
        data = job.model_dump(mode="json")
        placeholders = ", ".join("?" for _ in COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in COLUMNS if c != "id")
        cur = self.conn.cursor()
        cur.execute(
            f"INSERT INTO background_jobs ({', '.join(COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            tuple(data[c] for c in COLUMNS),
        )
        self.conn.commit()

    def get(self, job_id: str) -> Optional[BackgroundJob]:
        cur = self.conn.cursor()
        cur.row_factory = sqlite3.Row
        cur.execute("SELECT * FROM background_jobs WHERE id = ?", (job_id,))
        row = cur.fetchone()
        return BackgroundJob(**dict(row)) if row else None

    def list(self) -> List[BackgroundJob]:
        cur = self.conn.cursor()
        cur.row_factory = sqlite3.Row
        cur.execute("SELECT * FROM background_jobs ORDER BY rowid")
        return [BackgroundJob(**dict(r)) for r in cur.fetchall()]
