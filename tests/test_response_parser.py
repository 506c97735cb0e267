from __future__ import annotations

import json

from services.response_parser import parse_model_response


def _envelope(people, confidence=0.9, summary="Found people"):
    return json.dumps({"people": people, "confidence": confidence, "summary": summary})


def test_plain_json():
    raw = _envelope([{"name": "Jane Doe", "email": "jane@x.com", "position": "Engineer", "company": "Acme"}])
    result = parse_model_response(raw)
    assert len(result.people) == 1
    p = result.people[0]
    assert (p.name, p.email, p.position, p.company) == ("Jane Doe", "jane@x.com", "Engineer", "Acme")
    assert result.confidence == 0.9
    assert result.summary == "Found people"


def test_code_fence_and_prose():
    raw = "Here is the data you asked for:\n```json\n" + _envelope([{"name": "Bob"}]) + "\n```\nLet me know!"
    result = parse_model_response(raw)
    assert [p.name for p in result.people] == ["Bob"]


def test_prose_around_bare_json():
    raw = "Sure. " + _envelope([{"name": "Ann", "company": "Initech"}]) + " Hope this helps."
    result = parse_model_response(raw)
    assert result.people[0].company == "Initech"


def test_truncated_response_salvages_complete_objects():
    raw = (
        '{"people": [{"name": "Jane Doe", "email": "jane@x.com"}, '
        '{"name": "John Roe", "company": "Acme"}, {"name": "Cut Of'
    )
    result = parse_model_response(raw)
    assert [p.name for p in result.people] == ["Jane Doe", "John Roe"]
    assert result.confidence == 0.8


def test_trailing_commas_are_repaired():
    raw = '{"people": [{"name": "Jane", "email": "jane@x.com",},], "confidence": 0.6,}'
    result = parse_model_response(raw)
    assert [p.name for p in result.people] == ["Jane"]
    assert result.confidence == 0.6


def test_broken_envelope_falls_back_to_object_salvage():
    raw = '{"people": [{"name": "A One", "email": "a@x.com"} {"name": "B Two"}], "confidence": oops}'
    result = parse_model_response(raw)
    assert [p.name for p in result.people] == ["A One", "B Two"]
    assert result.confidence == 0.7


def test_empty_people_array():
    result = parse_model_response(_envelope([], confidence=0.3))
    assert result.people == []
    assert result.confidence == 0.3


def test_garbage_never_raises():
    for raw in ["no json here", "", "{not json", None, '{"people": "nope"}', "[1, 2, 3]"]:
        result = parse_model_response(raw)
        assert result.people == []
        assert result.confidence == 0.1
        assert result.summary == "parse failed"


def test_normalization_rules():
    raw = _envelope(
        [
            {"name": "  Jane  ", "email": "not-an-email", "additionalInfo": " likes tea "},
            {"email": "nameless@x.com"},
            {"name": ""},
        ],
        confidence=7,
        summary=None,
    )
    result = parse_model_response(raw)
    assert len(result.people) == 1
    p = result.people[0]
    assert p.name == "Jane"
    assert p.email == ""
    assert p.additional_info == "likes tea"
    assert result.confidence == 1.0
    assert result.summary == "Person data extracted successfully"


def test_missing_confidence_defaults():
    result = parse_model_response('{"people": [{"name": "X"}], "confidence": "high"}')
    assert result.confidence == 0.5
