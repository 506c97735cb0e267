"""
JSONL trace of AI provider calls.

With LLM_TRACE=true every request the provider gateway sends is appended to
LLM_LOG_PATH as one JSON object: which use case, which model, a hash of the
prompt (never the prompt itself), timing, outcome and token usage. Writing the
trace never fails the call being traced.
"""
from __future__ import annotations

import hashlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def sha256_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def prompt_fingerprint(messages: List[Dict[str, str]]) -> Optional[str]:
    """Hash of the last message, which carries the text under analysis."""
    return sha256_text(messages[-1].get("content") if messages else None)


def _trace_path() -> Optional[Path]:
    from config.settings import get_settings

    # Re-read env so LLM_TRACE can be toggled without restarting
    get_settings.cache_clear()
    settings = get_settings()
    return Path(settings.llm_log_path) if settings.llm_trace else None


def build_record(
    *,
    caller: str,
    provider: str,
    model: Optional[str],
    operation: str,
    prompt_hash: Optional[str],
    duration_ms: Optional[int],
    status: str,
    error: Optional[str],
    usage: Optional[Dict[str, Any]],
    attempt: Optional[int],
    extras: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "caller": caller,
        "provider": provider,
        "model": model,
        "operation": operation,
        "prompt_hash": prompt_hash,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
        "usage": usage or {},
    }
    if attempt is not None:
        record["attempt"] = attempt
    if os.getenv("RUN_ID"):
        record["run_id"] = os.getenv("RUN_ID")
    if extras:
        record["extras"] = extras
    return record


def log_call(
    *,
    caller: str,
    provider: str,
    model: Optional[str],
    operation: str,
    prompt_hash: Optional[str] = None,
    duration_ms: Optional[int] = None,
    status: str = "ok",
    error: Optional[str] = None,
    usage: Optional[Dict[str, Any]] = None,
    attempt: Optional[int] = None,
    extras: Optional[Dict[str, Any]] = None,
) -> None:
    path = _trace_path()
    if path is None:
        return
    record = build_record(
        caller=caller,
        provider=provider,
        model=model,
        operation=operation,
        prompt_hash=prompt_hash,
        duration_ms=duration_ms,
        status=status,
        error=error,
        usage=usage,
        attempt=attempt,
        extras=extras,
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
    except OSError:
        return
