"""
Recover person records from free-form model output.

Models wrap JSON in prose or code fences, emit trailing commas and get cut off
at the token limit. Every stage here degrades instead of raising: the worst
case is an empty result with confidence 0.1.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from errors import ResponseParseFailure
from models.analysis import AnalysisResult
from models.person_record import PERSON_FIELDS, PersonRecord, clamp_confidence, clean_string


FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
# A flat {"name": ...} object; nested braces are not expected inside a person
PERSON_OBJECT_RE = re.compile(r'\{\s*"name"[^{}]*\}')
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

TRUNCATED_CONFIDENCE = 0.8
REPAIRED_CONFIDENCE = 0.7
FAILED_CONFIDENCE = 0.1
DEFAULT_CONFIDENCE = 0.5
DEFAULT_SUMMARY = "Person data extracted successfully"
FAILED_SUMMARY = "parse failed"


def _json_candidate(content: str) -> str:
    m = FENCE_RE.search(content)
    if m:
        return m.group(1).strip()
    first = content.find("{")
    last = content.rfind("}")
    if first != -1 and last > first:
        return content[first:last + 1]
    if first != -1:
        # Cut off before any closing brace
        return content[first:]
    raise ResponseParseFailure("No JSON found in response")


def _loads_lenient(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return json.loads(TRAILING_COMMA_RE.sub(r"\1", text))


def _salvage_people(text: str, confidence: float) -> Optional[Dict[str, Any]]:
    """Parse every complete person object on its own and rebuild the envelope."""
    people: List[Dict[str, Any]] = []
    for match in PERSON_OBJECT_RE.findall(text):
        try:
            obj = _loads_lenient(match)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            people.append(obj)
    if not people:
        return None
    return {"people": people, "confidence": confidence, "summary": DEFAULT_SUMMARY}


def _is_truncated(content: str, candidate: str) -> bool:
    # Output cut at the token limit stops mid-value, not on a closing brace
    if not candidate.rstrip().endswith("}"):
        return True
    return FENCE_RE.search(content) is None and not content.rstrip().endswith("}")


def _decode(content: str) -> Dict[str, Any]:
    candidate = _json_candidate(content)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    if _is_truncated(content, candidate):
        salvaged = _salvage_people(candidate, TRUNCATED_CONFIDENCE)
        if salvaged is not None:
            return salvaged

    try:
        return json.loads(TRAILING_COMMA_RE.sub(r"\1", candidate))
    except json.JSONDecodeError:
        pass

    salvaged = _salvage_people(candidate, REPAIRED_CONFIDENCE)
    if salvaged is not None:
        return salvaged
    raise ResponseParseFailure("Unrecoverable JSON in model response")


def _to_person(entry: Dict[str, Any]) -> PersonRecord:
    data = {field: entry.get(field) for field in PERSON_FIELDS}
    data["additional_info"] = entry.get("additionalInfo", entry.get("additional_info"))
    return PersonRecord(**data)


def _normalize(parsed: Any) -> AnalysisResult:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("people"), list):
        raise ResponseParseFailure("Invalid response structure: missing people array")

    people = [
        _to_person(entry)
        for entry in parsed["people"]
        if isinstance(entry, dict) and clean_string(entry.get("name"))
    ]
    return AnalysisResult(
        people=people,
        confidence=clamp_confidence(parsed.get("confidence"), DEFAULT_CONFIDENCE),
        summary=clean_string(parsed.get("summary")) or DEFAULT_SUMMARY,
    )


def parse_model_response(content: Optional[str]) -> AnalysisResult:
    """Turn raw model text into an AnalysisResult. Never raises."""
    if not isinstance(content, str):
        return AnalysisResult(people=[], confidence=FAILED_CONFIDENCE, summary=FAILED_SUMMARY)
    try:
        return _normalize(_decode(content))
    except (ResponseParseFailure, ValueError, TypeError):
        return AnalysisResult(people=[], confidence=FAILED_CONFIDENCE, summary=FAILED_SUMMARY)
