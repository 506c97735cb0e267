from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Callable, List, Optional, Sequence, TypeVar

from db.repos.chunks_repo import ChunksRepo
from db.repos.people_repo import PeopleRepo
from errors import PersistenceError
from models import PersonRecord, Scope, ScopeStats, SearchPage, SearchQuery


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqliteGateway:
    """Person persistence over one SQLite connection.

    All calls share one re-entrant lock so the job ticker and synchronous
    extractions can use the same connection. sqlite3 errors surface as
    PersistenceError.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.chunks = ChunksRepo(conn)
        self._lock = threading.RLock()

    def _call(self, op: str, fn: Callable[[], T]) -> T:
        with self._lock:
            try:
                return fn()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error("Persistence failure in %s", op, extra={"step": op, "status": "error", "error": str(e)})
                raise PersistenceError(f"Database error during {op}: {e}", e) from e

    def insert_records(self, scope: Scope, records: Sequence[PersonRecord]) -> List[PersonRecord]:
        if not records:
            return []
        return self._call("insert_records", lambda: PeopleRepo(self.conn, scope).insert_many(records))

    def find_match(self, scope: Scope, candidate: PersonRecord) -> Optional[PersonRecord]:
        return self._call("find_match", lambda: PeopleRepo(self.conn, scope).find_match(candidate))

    def count_by_batch(self, scope: Scope, batch_id: str) -> int:
        return self._call("count_by_batch", lambda: PeopleRepo(self.conn, scope).count_by_batch(batch_id))

    def list_by_batch(self, scope: Scope, batch_id: str) -> List[PersonRecord]:
        return self._call("list_by_batch", lambda: PeopleRepo(self.conn, scope).list_by_batch(batch_id))

    def delete_by_batch(self, scope: Scope, batch_id: str) -> int:
        def _delete() -> int:
            deleted = PeopleRepo(self.conn, scope).delete_by_batch(batch_id)
            self.chunks.delete_batch(scope.key, batch_id)
            return deleted

        return self._call("delete_by_batch", _delete)

    def claim_chunk(self, scope: Scope, batch_id: str, chunk_index: int) -> bool:
        return self._call("claim_chunk", lambda: self.chunks.claim(scope.key, batch_id, chunk_index))

    def write_chunk(
        self, scope: Scope, batch_id: str, chunk_index: int, records: Sequence[PersonRecord]
    ) -> Optional[List[PersonRecord]]:
        """Claim a chunk and insert its records in one transaction.

        Returns None when the chunk was already written. On any failure neither
        the claim nor the rows are kept, so the chunk can be written later.
        """

        def _write() -> Optional[List[PersonRecord]]:
            try:
                if not self.chunks.claim(scope.key, batch_id, chunk_index, commit=False):
                    return None
                inserted = PeopleRepo(self.conn, scope).insert_many(records, commit=False)
                self.conn.commit()
                return inserted
            except Exception:
                self.conn.rollback()
                raise

        return self._call("write_chunk", _write)

    def mark_batch(self, scope: Scope, batch_id: str) -> None:
        self._call("mark_batch", lambda: self.chunks.mark_batch(scope.key, batch_id))

    def batch_exists(self, scope: Scope, batch_id: str) -> bool:
        return self._call("batch_exists", lambda: self.chunks.batch_exists(scope.key, batch_id))

    def search(self, scope: Scope, query: SearchQuery) -> SearchPage:
        return self._call("search", lambda: PeopleRepo(self.conn, scope).search(query))

    def stats(self, scope: Scope) -> ScopeStats:
        return self._call("stats", lambda: PeopleRepo(self.conn, scope).stats())
