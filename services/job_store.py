from __future__ import annotations

import sqlite3
import threading
from typing import Dict, List, Optional

from db.repos.jobs_repo import JobsRepo
from errors import PersistenceError
from models import BackgroundJob


class InMemoryJobStore:
    """Process-local job table; jobs are lost on restart."""

    def __init__(self) -> None:
        self._jobs: Dict[str, BackgroundJob] = {}
        self._lock = threading.Lock()

    def add(self, job: BackgroundJob) -> None:
        with self._lock:
            self._jobs[job.id] = job.model_copy()

    def get(self, job_id: str) -> Optional[BackgroundJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def save(self, job: BackgroundJob) -> None:
        with self._lock:
            self._jobs[job.id] = job.model_copy()

    def list(self) -> List[BackgroundJob]:
        # dicts keep insertion order, which is creation order
        with self._lock:
            return [j.model_copy() for j in self._jobs.values()]


class SqliteJobStore:
    """Durable job table in the background_jobs table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.repo = JobsRepo(conn)
        self._lock = threading.Lock()

    def _guard(self, fn, *args):
        with self._lock:
            try:
                return fn(*args)
            except sqlite3.Error as e:
                raise PersistenceError(f"Job store error: {e}", e) from e

    def add(self, job: BackgroundJob) -> None:
        self._guard(self.repo.upsert, job)

    def get(self, job_id: str) -> Optional[BackgroundJob]:
        return self._guard(self.repo.get, job_id)

    def save(self, job: BackgroundJob) -> None:
        self._guard(self.repo.upsert, job)

    def list(self) -> List[BackgroundJob]:
        return self._guard(self.repo.list)
