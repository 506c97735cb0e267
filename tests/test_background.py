from __future__ import annotations

import dataclasses
import json
import threading
import time
from datetime import datetime, timezone

import pytest

from conftest import FakeLLM
from errors import AIProviderError, PersistenceError, TextExtractionError, ValidationError
from models import BackgroundJob, Scope
from services.analysis_client import AIAnalysisClient
from services.background import BackgroundJobScheduler, select_next_job
from services.job_store import InMemoryJobStore


def _reply(*people):
    return json.dumps({"people": list(people), "confidence": 0.9, "summary": "ok"})


@pytest.fixture
def job_settings(settings):
    return dataclasses.replace(settings, chunk_size=100, max_retries=0)


def _scheduler(gateway, job_settings, outcomes, store=None):
    llm = FakeLLM(outcomes)
    client = AIAnalysisClient(llm, settings=job_settings, sleep=lambda _s: None)
    return BackgroundJobScheduler(gateway, client, store=store, settings=job_settings), llm


def _job(job_id, status="pending"):
    return BackgroundJob(
        id=job_id, source_path="x.txt", status=status, total_chunks=1, created_at=datetime.now(timezone.utc)
    )


def test_select_next_job_is_first_unfinished_in_creation_order():
    jobs = [_job("a", "completed"), _job("b", "failed"), _job("c", "processing"), _job("d")]
    assert select_next_job(jobs).id == "c"
    assert select_next_job([_job("a", "completed")]) is None
    assert select_next_job([]) is None


def test_three_chunk_job_completes_after_three_ticks(tmp_path, gateway, job_settings):
    source = tmp_path / "big.txt"
    source.write_text("a" * 250, encoding="utf-8")
    scheduler, llm = _scheduler(
        gateway,
        job_settings,
        [_reply({"name": "Ann", "email": "ann@x.com"}), _reply(), _reply({"name": "Cy", "company": "Acme"})],
    )

    out = scheduler.submit(str(source), "employees", "big.txt")
    job_id = out["job_id"]
    assert "3 chunks" in out["message"]
    assert scheduler.get_job_status(job_id).status == "pending"

    progress = []
    for _ in range(3):
        job = scheduler.tick()
        progress.append((job.processed_chunks, job.status))
        assert job.processed_chunks <= job.total_chunks

    assert progress == [(1, "processing"), (2, "processing"), (3, "completed")]
    final = scheduler.get_job_status(job_id)
    assert final.started_at is not None and final.completed_at is not None
    assert scheduler.tick() is None
    assert len(llm.calls) == 3

    stored = gateway.list_by_batch(Scope.shared(), job_id)
    assert [(p.name, p.chunk_index) for p in stored] == [("Ann", 0), ("Cy", 2)]
    assert list((tmp_path / "chunks").iterdir()) == []


def test_failed_chunk_fails_job_and_cleans_scratch(tmp_path, gateway, job_settings):
    source = tmp_path / "big.txt"
    source.write_text("b" * 150, encoding="utf-8")
    scheduler, _ = _scheduler(gateway, job_settings, [_reply(), AIProviderError("provider down")])
    job_id = scheduler.submit(str(source))["job_id"]

    scheduler.tick()
    job = scheduler.tick()

    assert job.status == "failed"
    assert job.error_message == "provider down"
    assert job.processed_chunks == 1
    assert job.completed_at is not None
    assert list((tmp_path / "chunks").iterdir()) == []
    # a failed job is never picked up again
    assert scheduler.tick() is None
    assert scheduler.get_job_status(job_id).status == "failed"


def test_jobs_are_processed_in_submission_order(tmp_path, gateway, job_settings):
    first = tmp_path / "one.txt"
    second = tmp_path / "two.txt"
    first.write_text("1" * 150, encoding="utf-8")
    second.write_text("2" * 50, encoding="utf-8")
    scheduler, _ = _scheduler(gateway, job_settings, [_reply()] * 3)
    a = scheduler.submit(str(first))["job_id"]
    b = scheduler.submit(str(second))["job_id"]

    ticked = [scheduler.tick().id for _ in range(3)]

    assert ticked == [a, a, b]
    assert [j.status for j in scheduler.list_jobs()] == ["completed", "completed"]


def test_submit_validation(tmp_path, gateway, job_settings):
    scheduler, _ = _scheduler(gateway, job_settings, [])
    empty = tmp_path / "empty.txt"
    empty.write_text("  \n", encoding="utf-8")

    with pytest.raises(ValidationError):
        scheduler.submit("")
    with pytest.raises(ValidationError):
        scheduler.submit(str(empty))
    with pytest.raises(TextExtractionError):
        scheduler.submit(str(tmp_path / "missing.txt"))
    assert scheduler.list_jobs() == []


def test_start_and_stop_ticker(tmp_path, gateway, job_settings):
    source = tmp_path / "small.txt"
    source.write_text("hello", encoding="utf-8")
    scheduler, _ = _scheduler(gateway, dataclasses.replace(job_settings, job_tick_seconds=0.01), [_reply()])
    job_id = scheduler.submit(str(source))["job_id"]

    scheduler.start()
    try:
        for _ in range(500):
            if scheduler.get_job_status(job_id).status == "completed":
                break
            time.sleep(0.01)
    finally:
        scheduler.stop()

    assert scheduler.get_job_status(job_id).status == "completed"


class FlakyStore(InMemoryJobStore):
    """Fails the save calls whose 1-based position is listed."""

    def __init__(self, failing_saves):
        super().__init__()
        self.failing_saves = set(failing_saves)
        self.saves = 0

    def save(self, job):
        self.saves += 1
        if self.saves in self.failing_saves:
            raise PersistenceError("job store unavailable")
        super().save(job)


def test_store_failure_does_not_escape_tick(tmp_path, gateway, job_settings):
    source = tmp_path / "small.txt"
    source.write_text("Ann ann@x.com", encoding="utf-8")
    ann = {"name": "Ann", "email": "ann@x.com"}
    # save 1 marks the first tick processing, save 2 records its outcome
    store = FlakyStore(failing_saves={2})
    scheduler, llm = _scheduler(gateway, job_settings, [_reply(ann), _reply(ann)], store=store)
    job_id = scheduler.submit(str(source))["job_id"]

    assert scheduler.tick() is None
    assert scheduler.get_job_status(job_id).status == "processing"

    job = scheduler.tick()
    assert job.status == "completed"
    assert len(llm.calls) == 2
    assert len(gateway.list_by_batch(Scope.shared(), job_id)) == 1


def test_ticker_survives_store_failure(tmp_path, gateway, job_settings):
    source = tmp_path / "small.txt"
    source.write_text("hello", encoding="utf-8")
    scheduler, _ = _scheduler(
        gateway,
        dataclasses.replace(job_settings, job_tick_seconds=0.01),
        [_reply()],
        store=FlakyStore(failing_saves={1}),
    )
    job_id = scheduler.submit(str(source))["job_id"]

    scheduler.start()
    try:
        for _ in range(500):
            if scheduler.get_job_status(job_id).status == "completed":
                break
            time.sleep(0.01)
    finally:
        scheduler.stop()

    assert scheduler.get_job_status(job_id).status == "completed"


class BlockingLLM:
    def __init__(self, reply):
        self.reply = reply
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete(self, *, use_case, messages, temperature=None, max_tokens=None):
        self.entered.set()
        self.release.wait(5)
        return self.reply


def test_overlapping_tick_returns_without_waiting(tmp_path, gateway, job_settings):
    source = tmp_path / "small.txt"
    source.write_text("hello", encoding="utf-8")
    llm = BlockingLLM(_reply())
    client = AIAnalysisClient(llm, settings=job_settings, sleep=lambda _s: None)
    scheduler = BackgroundJobScheduler(gateway, client, settings=job_settings)
    job_id = scheduler.submit(str(source))["job_id"]

    results = []
    worker = threading.Thread(target=lambda: results.append(scheduler.tick()))
    worker.start()
    try:
        assert llm.entered.wait(5)
        assert scheduler.tick() is None
        assert scheduler.get_job_status(job_id).status == "processing"
    finally:
        llm.release.set()
        worker.join(5)

    assert results[0].status == "completed"
