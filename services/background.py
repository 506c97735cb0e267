"""
Paced background extraction of large text files.

Submitting a job only records it. A single ticker thread then processes one
fixed-width slice of one job per tick, so a huge upload is spread over time
instead of hammering the AI provider. Jobs are processed strictly in creation
order; a job that fails any chunk stops there.
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from config.settings import Settings, get_settings
from errors import JobFailure, TextExtractionError, ValidationError
from models import AnalysisRequest, BackgroundJob, PartialResult, Scope
from ports.repos import JobStorePort, PersonGatewayPort
from services.analysis_client import AIAnalysisClient
from services.chunking import count_chunks, slice_chunk
from services.job_store import InMemoryJobStore
from services.orchestrator import PersistingSink
from utils.logging_setup import bind


logger = logging.getLogger(__name__)

# Confidence stamped on records when the provider reported none
FALLBACK_CONFIDENCE = 0.8


def select_next_job(jobs: Sequence[BackgroundJob]) -> Optional[BackgroundJob]:
    """First job in creation order that still has work."""
    for job in jobs:
        if job.status in ("pending", "processing"):
            return job
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BackgroundJobScheduler:
    def __init__(
        self,
        gateway: PersonGatewayPort,
        analysis: AIAnalysisClient,
        store: Optional[JobStorePort] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        s = settings or get_settings()
        self.gateway = gateway
        self.analysis = analysis
        self.store: JobStorePort = store or InMemoryJobStore()
        self.chunk_size = s.chunk_size
        self.tick_seconds = s.job_tick_seconds
        self.scratch_dir = Path(s.scratch_dir)
        self._tick_lock = threading.Lock()
        self._ticking = False
        self._shutdown_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def submit(
        self,
        source_path: str,
        extraction_type: str = "general",
        source: str = "background_upload",
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not source_path:
            raise ValidationError("No file uploaded")
        text = self._read_source(source_path)
        if not text.strip():
            raise ValidationError("Source file is empty")

        total = count_chunks(text, self.chunk_size)
        job = BackgroundJob(
            id=str(uuid.uuid4()),
            source_path=str(source_path),
            extraction_type=extraction_type,
            source=source,
            description=description,
            total_chunks=total,
            created_at=_now(),
        )
        self.store.add(job)
        bind(logger, job_id=job.id).info("Background job created with %d chunks", total, extra={"status": "pending"})
        return {
            "job_id": job.id,
            "message": (
                f"Background processing started. Job ID: {job.id}. "
                f"Processing {total} chunks every {self.tick_seconds:g} seconds."
            ),
        }

    @staticmethod
    def _read_source(source_path: str) -> str:
        try:
            return Path(source_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TextExtractionError(f"Cannot read source file {source_path}: {e}", e) from e

    def tick(self) -> Optional[BackgroundJob]:
        """Process one chunk of the next eligible job. Never raises.

        Returns the job as it stands after the tick, or None when idle, when
        another tick is still running, or when the job store failed.
        """
        # The lock only guards the flag; provider calls run outside it
        with self._tick_lock:
            if self._ticking:
                logger.debug("Previous tick still running, skipping")
                return None
            self._ticking = True
        try:
            return self._tick()
        except Exception as e:
            logger.error("Background tick aborted", extra={"status": "error", "error": str(e)})
            return None
        finally:
            with self._tick_lock:
                self._ticking = False

    def _tick(self) -> Optional[BackgroundJob]:
        job = select_next_job(self.store.list())
        if job is None:
            return None
        log = bind(logger, job_id=job.id)

        job.status = "processing"
        if job.started_at is None:
            job.started_at = _now()
        self.store.save(job)

        try:
            self._process_chunk(job)
            job.processed_chunks += 1
            if job.processed_chunks >= job.total_chunks:
                job.status = "completed"
                job.completed_at = _now()
                log.info("Background job completed", extra={"status": "completed"})
        except JobFailure as e:
            job.status = "failed"
            job.error_message = str(e)
            job.completed_at = _now()
            log.error(
                "Background job failed on chunk %d/%d",
                job.processed_chunks + 1,
                job.total_chunks,
                extra={"status": "failed", "error": str(e)},
            )
        # A failed save leaves the job at its last saved chunk; the ledger blocks a rewrite
        self.store.save(job)
        return job

    def _process_chunk(self, job: BackgroundJob) -> None:
        try:
            self._run_chunk(job)
        except Exception as e:
            raise JobFailure(str(e), e) from e

    def _run_chunk(self, job: BackgroundJob) -> None:
        index = job.processed_chunks
        log = bind(logger, job_id=job.id, step="background_chunk")
        chunk = slice_chunk(self._read_source(job.source_path), index, self.chunk_size)
        log.info("Processing chunk %d/%d (%d chars)", index + 1, job.total_chunks, len(chunk))

        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        chunk_path = self.scratch_dir / f"{job.id}_chunk_{index}.txt"
        chunk_path.write_text(chunk, encoding="utf-8")
        try:
            request = AnalysisRequest(
                extraction_type=job.extraction_type,
                source=job.source,
                description=job.description,
                batch_id=job.id,
            )
            result = self.analysis.analyze_single(chunk, request)
            if result.people:
                sink = PersistingSink(self.gateway, Scope.shared(), started_at=_now().isoformat())
                sink.accept(
                    PartialResult(
                        people=result.people,
                        confidence=result.confidence or FALLBACK_CONFIDENCE,
                        chunk_index=index,
                        total_chunks=job.total_chunks,
                        batch_id=job.id,
                        extraction_type=job.extraction_type,
                        source=job.source,
                        description=job.description,
                    )
                )
                log.info("Saved %d people", len(sink.persisted))
        finally:
            chunk_path.unlink(missing_ok=True)

    def start(self) -> None:
        """Run tick() every job_tick_seconds on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._shutdown_event.clear()
        self._thread = threading.Thread(target=self._loop, name="background-jobs", daemon=True)
        self._thread.start()
        logger.info("Background scheduler started (every %.0fs)", self.tick_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._shutdown_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if not self._thread.is_alive():
                self._thread = None
            else:
                logger.warning("Scheduler thread did not stop within timeout, still running")

    def join(self) -> None:
        """Block until the ticker thread exits."""
        if self._thread is not None:
            self._thread.join()

    def _loop(self) -> None:
        while not self._shutdown_event.wait(self.tick_seconds):
            self.tick()

    def get_job_status(self, job_id: str) -> Optional[BackgroundJob]:
        return self.store.get(job_id)

    def list_jobs(self) -> List[BackgroundJob]:
        return self.store.list()
