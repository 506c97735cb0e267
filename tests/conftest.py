from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path

import pytest


def pytest_configure():
    # Ensure project root is on sys.path for absolute imports like 'services.chunking'
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))
    # Set test environment knobs
    os.environ.setdefault("RUN_ENV", "test")


class FakeLLM:
    """Scripted provider: returns (or raises) the queued outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def complete(self, *, use_case, messages, temperature=None, max_tokens=None):
        self.calls.append({"use_case": use_case, "messages": messages})
        if not self.outcomes:
            raise AssertionError("FakeLLM ran out of scripted outcomes")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSink:
    def __init__(self):
        self.partials = []

    def accept(self, partial):
        self.partials.append(partial)


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.setenv("RUN_ENV", "test")
    monkeypatch.setenv("AI_ENABLED", "false")
    from config.settings import get_settings

    get_settings.cache_clear()
    base = get_settings()
    return dataclasses.replace(
        base,
        run_env="test",
        scratch_dir=str(tmp_path / "chunks"),
        db_path=str(tmp_path / "people.db"),
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(settings, sleeps):
    from services.analysis_client import AIAnalysisClient

    def _make(outcomes, **overrides):
        llm = FakeLLM(outcomes)
        client = AIAnalysisClient(llm, settings=dataclasses.replace(settings, **overrides), sleep=sleeps.append)
        return client, llm

    return _make


@pytest.fixture
def conn(tmp_path):
    from db.connection import open_database

    connection = open_database(str(tmp_path / "people.db"))
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture
def gateway(conn):
    from db.gateway import SqliteGateway

    return SqliteGateway(conn)
