from __future__ import annotations

import sqlite3


class ChunksRepo:
    """Ledger of analyzed batches and of the (scope, batch, chunk) triples already written.

    Methods leave the transaction open when commit=False so a claim can share
    one commit with the rows it guards.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def claim(self, scope_key: str, batch_id: str, chunk_index: int, commit: bool = True) -> bool:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT OR IGNORE INTO batch_chunks(scope_key, batch_id, chunk_index) VALUES (?, ?, ?)",
            (scope_key, batch_id, int(chunk_index)),
        )
        claimed = cur.rowcount == 1
        if commit:
            self.conn.commit()
        return claimed

    def mark_batch(self, scope_key: str, batch_id: str) -> None:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT OR IGNORE INTO batches(scope_key, batch_id) VALUES (?, ?)",
            (scope_key, batch_id),
        )
        self.conn.commit()

    def batch_exists(self, scope_key: str, batch_id: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("SELECT 1 FROM batches WHERE scope_key = ? AND batch_id = ?", (scope_key, batch_id))
        return cur.fetchone() is not None

    def delete_batch(self, scope_key: str, batch_id: str) -> int:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM batch_chunks WHERE scope_key = ? AND batch_id = ?", (scope_key, batch_id))
        deleted = cur.rowcount
        cur.execute("DELETE FROM batches WHERE scope_key = ? AND batch_id = ?", (scope_key, batch_id))
        self.conn.commit()
        return int(deleted)
