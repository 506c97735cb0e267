from __future__ import annotations

import sqlite3

import pytest

from db.repos.people_repo import PeopleRepo
from errors import PersistenceError
from models import PersonRecord, Scope
from pipelines.runner import Pipeline, RunContext
from pipelines.steps import DedupePeople, PersistPeople


def _ctx(people, chunk_index=0, scope=None):
    return RunContext(
        scope=scope or Scope.shared(),
        batch_id="text-abc-def",
        chunk_index=chunk_index,
        total_chunks=2,
        people=people,
        meta={"extraction_type": "employees", "source": "notes.txt", "confidence": 0.75},
    )


def test_persist_people_tags_provenance(gateway):
    out = PersistPeople(gateway).run(_ctx([PersonRecord(name="Alice", email="alice@x.com")]))

    assert out.meta["processed_people"] == 1
    stored = gateway.list_by_batch(Scope.shared(), "text-abc-def")
    assert len(stored) == 1
    rec = stored[0]
    assert rec.id is not None
    assert (rec.batch_id, rec.chunk_index, rec.total_chunks) == ("text-abc-def", 0, 2)
    assert (rec.extraction_type, rec.source, rec.confidence, rec.status) == ("employees", "notes.txt", 0.75, "processed")
    assert rec.processing_completed_at is not None


def test_same_chunk_is_written_once(gateway):
    PersistPeople(gateway).run(_ctx([PersonRecord(name="Alice")]))
    again = PersistPeople(gateway).run(_ctx([PersonRecord(name="Another")]))

    assert again.meta["processed_people"] == 0
    assert gateway.count_by_batch(Scope.shared(), "text-abc-def") == 1


def test_failed_insert_leaves_chunk_unclaimed(gateway, monkeypatch):
    real_insert = PeopleRepo.insert_many
    calls = []

    def flaky_insert(self, records, commit=True):
        calls.append(len(records))
        if len(calls) == 1:
            raise sqlite3.OperationalError("disk I/O error")
        return real_insert(self, records, commit)

    monkeypatch.setattr(PeopleRepo, "insert_many", flaky_insert)

    with pytest.raises(PersistenceError):
        PersistPeople(gateway).run(_ctx([PersonRecord(name="Alice")]))
    assert gateway.count_by_batch(Scope.shared(), "text-abc-def") == 0

    out = PersistPeople(gateway).run(_ctx([PersonRecord(name="Alice")]))
    assert out.meta["processed_people"] == 1
    assert [p.name for p in gateway.list_by_batch(Scope.shared(), "text-abc-def")] == ["Alice"]


def test_dedupe_then_persist_pipeline(gateway):
    pipeline = Pipeline([DedupePeople(gateway), PersistPeople(gateway)])
    first = pipeline.run(_ctx([PersonRecord(name="Alice", email="alice@x.com")], chunk_index=0))
    out = pipeline.run(
        _ctx([PersonRecord(name="Alice", email="alice@x.com"), PersonRecord(name="Bob")], chunk_index=1)
    )

    assert first.meta["processed_people"] == 1
    assert out.meta["skipped_duplicates"] == 1
    assert [p.name for p in out.meta["persisted"]] == ["Bob"]
    assert out.meta["processed_people"] == 1
