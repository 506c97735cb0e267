from __future__ import annotations

import json

import pytest

from conftest import RecordingSink
from errors import AIProviderError, AIProviderRateLimited
from models import AnalysisRequest


def _reply(*people, confidence=0.9):
    return json.dumps({"people": list(people), "confidence": confidence, "summary": "ok"})


JANE = {"name": "Jane Doe", "email": "jane@x.com", "position": "Engineer", "company": "Acme"}


def test_single_chunk_extracts_person(make_client):
    client, llm = make_client([_reply(JANE)])
    result = client.analyze("Jane Doe, jane@x.com, Engineer, Acme", AnalysisRequest())

    assert len(llm.calls) == 1
    assert len(result.people) == 1
    p = result.people[0]
    assert (p.name, p.email, p.position, p.company) == ("Jane Doe", "jane@x.com", "Engineer", "Acme")


def test_prompt_carries_metadata(make_client):
    client, llm = make_client([_reply(JANE)])
    client.analyze("some text", AnalysisRequest(extraction_type="employees", source="crm.csv", description="Q3 list"))
    prompt = llm.calls[0]["messages"][-1]["content"]
    assert "EXTRACTION TYPE: employees" in prompt
    assert "SOURCE: crm.csv" in prompt
    assert "DESCRIPTION: Q3 list" in prompt
    assert "some text" in prompt


def test_rate_limited_twice_then_succeeds(make_client, sleeps):
    client, llm = make_client([AIProviderRateLimited(), AIProviderRateLimited(), _reply(JANE)])
    result = client.analyze("Jane Doe", AnalysisRequest())

    assert len(llm.calls) == 3
    assert [p.name for p in result.people] == ["Jane Doe"]
    assert sleeps == [10, 20]


def test_rate_limit_exhaustion_raises(make_client):
    client, llm = make_client([AIProviderRateLimited()] * 10)
    with pytest.raises(AIProviderError, match="Max retries exceeded"):
        client.analyze("Jane Doe", AnalysisRequest())
    assert len(llm.calls) == 4


def test_transient_error_retries_then_propagates(make_client, sleeps):
    client, llm = make_client([AIProviderError("boom 500", status_code=500)] * 10, max_retries=2)
    with pytest.raises(AIProviderError, match="boom 500"):
        client.analyze("Jane Doe", AnalysisRequest())
    assert len(llm.calls) == 3
    assert sleeps == [10, 20]


def test_unexpected_error_is_wrapped(make_client):
    client, _ = make_client([RuntimeError("socket closed")])
    with pytest.raises(AIProviderError, match="AI analysis failed: socket closed"):
        client.analyze("Jane Doe", AnalysisRequest())


def test_single_path_feeds_sink(make_client):
    client, _ = make_client([_reply(JANE)])
    sink = RecordingSink()
    client.analyze("Jane Doe", AnalysisRequest(batch_id="b1"), sink=sink)

    assert len(sink.partials) == 1
    partial = sink.partials[0]
    assert (partial.chunk_index, partial.total_chunks, partial.batch_id) == (0, 1, "b1")


def test_empty_result_does_not_reach_sink(make_client):
    client, _ = make_client([_reply()])
    sink = RecordingSink()
    result = client.analyze("nothing here", AnalysisRequest(), sink=sink)
    assert result.people == []
    assert sink.partials == []


def test_multi_chunk_merges_and_skips_failed_chunk(make_client, sleeps):
    text = "\n".join(["a" * 40, "b" * 40, "c" * 40])
    bob = {"name": "Bob", "company": "Initech"}
    outcomes = [
        _reply(JANE, confidence=0.8),
        # chunk 2 fails on every attempt (1 + 2 retries)
        AIProviderError("bad gateway", status_code=502),
        AIProviderError("bad gateway", status_code=502),
        AIProviderError("bad gateway", status_code=502),
        _reply({"name": "Jane Doe", "email": "JANE@x.com"}, bob, confidence=0.6),
    ]
    client, llm = make_client(outcomes, chunk_size=50, max_retries=0)
    sink = RecordingSink()
    result = client.analyze(text, AnalysisRequest(source="upload.txt", batch_id="b1"), sink=sink)

    assert len(llm.calls) == 5
    assert [p.name for p in result.people] == ["Jane Doe", "Bob"]
    assert result.confidence == pytest.approx(0.7)
    assert result.summary == "Processed 2/3 chunks successfully, found 2 unique people"
    assert [(p.chunk_index, p.total_chunks) for p in sink.partials] == [(0, 3), (2, 3)]
    # chunk retry backoff for chunk 2, inter-chunk delays after chunks 1 and 2
    assert sleeps == [1.5, 2, 4, 1.5]
    assert "SOURCE: upload.txt - Chunk 2/3" in llm.calls[1]["messages"][-1]["content"]


def test_sink_failure_propagates(make_client):
    from errors import PersistenceError

    class FailingSink:
        def accept(self, partial):
            raise PersistenceError("disk full")

    client, llm = make_client([_reply(JANE)])
    with pytest.raises(PersistenceError):
        client.analyze("Jane Doe", AnalysisRequest(), sink=FailingSink())
    assert len(llm.calls) == 1
