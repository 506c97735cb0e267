from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models import PersonRecord, Scope, ScopedPersonRecord, ScopeStats, SearchPage, SearchQuery


BASE_COLUMNS: List[str] = [
    "name",
    "email",
    "position",
    "company",
    "phone",
    "location",
    "department",
    "linkedin",
    "website",
    "additional_info",
    "confidence",
    "source",
    "extraction_type",
    "description",
    "status",
    "batch_id",
    "chunk_index",
    "total_chunks",
    "created_at",
    "processing_started_at",
    "processing_completed_at",
]
USER_COLUMNS: List[str] = ["user_id", "user_email", "is_duplicate_in_master", "master_reference_id"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PeopleRepo:
    """Person rows of one scope: the shared `people` table or one user's `user_people` rows."""

    def __init__(self, conn: sqlite3.Connection, scope: Scope):
        self.conn = conn
        self.scope = scope
        self.table = "user_people" if scope.is_user else "people"
        self.columns = BASE_COLUMNS + (USER_COLUMNS if scope.is_user else [])

    def _scope_filter(self) -> Tuple[str, List[Any]]:
        if self.scope.is_user:
            return "user_id = ?", [self.scope.user_id]
        return "1 = 1", []

    def _row_to_record(self, row: sqlite3.Row) -> PersonRecord:
        data: Dict[str, Any] = dict(row)
        if self.scope.is_user:
            data["is_duplicate_in_master"] = bool(data.get("is_duplicate_in_master"))
            return ScopedPersonRecord(**data)
        return PersonRecord(**data)

    def _select(self, sql: str, params: Sequence[Any]) -> List[PersonRecord]:
        cur = self.conn.cursor()
        cur.row_factory = sqlite3.Row
        cur.execute(sql, tuple(params))
        return [self._row_to_record(r) for r in cur.fetchall()]

    def insert_many(self, records: Sequence[PersonRecord], commit: bool = True) -> List[PersonRecord]:
        """Insert records in one transaction; returns them with row ids set."""
        placeholders = ", ".join("?" for _ in self.columns)
        sql = f"INSERT INTO {self.table} ({', '.join(self.columns)}) VALUES ({placeholders})"
        inserted: List[PersonRecord] = []
        cur = self.conn.cursor()
        for record in records:
            if self.scope.is_user:
                if not isinstance(record, ScopedPersonRecord):
                    record = ScopedPersonRecord(**record.model_dump(), user_id=self.scope.user_id)
                record = record.model_copy(update={"user_id": self.scope.user_id, "user_email": record.user_email or self.scope.user_email})
            if record.created_at is None:
                record = record.model_copy(update={"created_at": _now()})
            values = record.model_dump()
            if self.scope.is_user:
                values["is_duplicate_in_master"] = 1 if values["is_duplicate_in_master"] else 0
            cur.execute(sql, tuple(values[c] for c in self.columns))
            inserted.append(record.model_copy(update={"id": int(cur.lastrowid)}))
        if commit:
            self.conn.commit()
        return inserted

    def find_match(self, candidate: PersonRecord) -> Optional[PersonRecord]:
        """First row matching email+name, email alone, or name+company.

        An empty email never matches on its own.
        """
        clauses: List[str] = []
        params: List[Any] = []
        if candidate.email:
            clauses.append("(email = ? AND name = ?)")
            params.extend([candidate.email, candidate.name])
            clauses.append("(email = ?)")
            params.append(candidate.email)
        clauses.append("(name = ? AND company = ?)")
        params.extend([candidate.name, candidate.company])

        scope_sql, scope_params = self._scope_filter()
        sql = (
            f"SELECT * FROM {self.table} WHERE {scope_sql} AND ({' OR '.join(clauses)}) "
            "ORDER BY id LIMIT 1"
        )
        rows = self._select(sql, scope_params + params)
        return rows[0] if rows else None

    def count_by_batch(self, batch_id: str) -> int:
        scope_sql, scope_params = self._scope_filter()
        cur = self.conn.cursor()
        cur.execute(f"SELECT COUNT(*) FROM {self.table} WHERE {scope_sql} AND batch_id = ?", (*scope_params, batch_id))
        return int(cur.fetchone()[0])

    def list_by_batch(self, batch_id: str) -> List[PersonRecord]:
        scope_sql, scope_params = self._scope_filter()
        return self._select(
            f"SELECT * FROM {self.table} WHERE {scope_sql} AND batch_id = ? ORDER BY chunk_index, id",
            scope_params + [batch_id],
        )

    def delete_by_batch(self, batch_id: str) -> int:
        scope_sql, scope_params = self._scope_filter()
        cur = self.conn.cursor()
        cur.execute(f"DELETE FROM {self.table} WHERE {scope_sql} AND batch_id = ?", (*scope_params, batch_id))
        deleted = cur.rowcount
        self.conn.commit()
        return int(deleted)

    def search(self, query: SearchQuery) -> SearchPage:
        scope_sql, scope_params = self._scope_filter()
        where = [scope_sql]
        params: List[Any] = list(scope_params)
        if query.text:
            like = f"%{query.text}%"
            where.append("(name LIKE ? OR email LIKE ? OR company LIKE ? OR position LIKE ?)")
            params.extend([like, like, like, like])
        if query.company:
            where.append("company LIKE ?")
            params.append(f"%{query.company}%")
        if query.position:
            where.append("position LIKE ?")
            params.append(f"%{query.position}%")
        if query.status:
            where.append("status = ?")
            params.append(query.status)
        if query.batch_id:
            where.append("batch_id = ?")
            params.append(query.batch_id)
        if query.is_duplicate_in_master is not None and self.scope.is_user:
            where.append("is_duplicate_in_master = ?")
            params.append(1 if query.is_duplicate_in_master else 0)
        where_sql = " AND ".join(where)

        cur = self.conn.cursor()
        cur.execute(f"SELECT COUNT(*) FROM {self.table} WHERE {where_sql}", tuple(params))
        total = int(cur.fetchone()[0])
        records = self._select(
            f"SELECT * FROM {self.table} WHERE {where_sql} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            params + [query.limit, query.offset],
        )
        return SearchPage(records=records, total=total, limit=query.limit, offset=query.offset)

    def stats(self) -> ScopeStats:
        scope_sql, params = self._scope_filter()
        cur = self.conn.cursor()
        cur.execute(
            (
                "SELECT COUNT(*), "
                "       SUM(CASE WHEN status = 'processed' THEN 1 ELSE 0 END), "
                "       SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END), "
                "       SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END), "
                "       COUNT(DISTINCT batch_id), "
                "       COUNT(DISTINCT NULLIF(email, '')), "
                "       MAX(processing_completed_at) "
                f"FROM {self.table} WHERE {scope_sql}"
            ),
            tuple(params),
        )
        total, processed, pending, failed, batches, emails, last_processed = cur.fetchone()

        def _grouped(column: str) -> Dict[str, int]:
            cur.execute(f"SELECT {column}, COUNT(*) FROM {self.table} WHERE {scope_sql} GROUP BY {column}", tuple(params))
            return {str(k): int(v) for k, v in cur.fetchall()}

        duplicates = None
        if self.scope.is_user:
            cur.execute(f"SELECT COUNT(*) FROM {self.table} WHERE {scope_sql} AND is_duplicate_in_master = 1", tuple(params))
            duplicates = int(cur.fetchone()[0])

        return ScopeStats(
            total_records=int(total or 0),
            processed_records=int(processed or 0),
            pending_records=int(pending or 0),
            failed_records=int(failed or 0),
            total_batches=int(batches or 0),
            unique_emails=int(emails or 0),
            duplicates_in_master=duplicates,
            records_by_type=_grouped("extraction_type"),
            records_by_source=_grouped("source"),
            last_processed=last_processed,
        )
