from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from models import BackgroundJob, PersonRecord, Scope, ScopeStats, SearchPage, SearchQuery


class PersonGatewayPort(Protocol):
    def insert_records(self, scope: Scope, records: Sequence[PersonRecord]) -> List[PersonRecord]:
        ...

    def find_match(self, scope: Scope, candidate: PersonRecord) -> Optional[PersonRecord]:
        """First stored record in scope matching email+name, email, or name+company."""
        ...

    def count_by_batch(self, scope: Scope, batch_id: str) -> int:
        ...

    def list_by_batch(self, scope: Scope, batch_id: str) -> List[PersonRecord]:
        ...

    def delete_by_batch(self, scope: Scope, batch_id: str) -> int:
        ...

    def claim_chunk(self, scope: Scope, batch_id: str, chunk_index: int) -> bool:
        """Record that a chunk is being written; False if it was already written."""
        ...

    def write_chunk(
        self, scope: Scope, batch_id: str, chunk_index: int, records: Sequence[PersonRecord]
    ) -> Optional[List[PersonRecord]]:
        """Atomically claim a chunk and insert its records; None if it was already written."""
        ...

    def mark_batch(self, scope: Scope, batch_id: str) -> None:
        """Record that a batch was fully analyzed, whatever it stored."""
        ...

    def batch_exists(self, scope: Scope, batch_id: str) -> bool:
        ...

    def search(self, scope: Scope, query: SearchQuery) -> SearchPage:
        ...

    def stats(self, scope: Scope) -> ScopeStats:
        ...


class JobStorePort(Protocol):
    def add(self, job: BackgroundJob) -> None:
        ...

    def get(self, job_id: str) -> Optional[BackgroundJob]:
        ...

    def save(self, job: BackgroundJob) -> None:
        ...

    def list(self) -> List[BackgroundJob]:
        """All jobs in creation order."""
        ...
