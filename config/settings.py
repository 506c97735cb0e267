from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from errors import ConfigurationError


def _load_env() -> None:
    # Centralized dotenv loading; safe if .env missing
    load_dotenv()


def _as_bool(value: str | None, default: str = "false") -> bool:
    return (value if value is not None else default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Provider selection
    ai_enabled: bool
    ai_provider: str  # stub | openai | http

    openai_api_key: str | None
    openai_base_url: str | None
    openai_model: str

    # Raw OpenAI-compatible chat-completions endpoint (provider "http")
    ai_api_url: str
    ai_api_key: str | None
    ai_model: str

    ai_temperature: float
    ai_max_tokens: int
    http_timeout_seconds: int

    # Chunking / retry policy
    chunk_size: int
    max_retries: int
    retry_base_delay_seconds: float
    chunk_max_retries: int
    chunk_retry_delay_seconds: float
    inter_chunk_delay_seconds: float

    # Background jobs
    job_tick_seconds: float
    scratch_dir: str

    # Core/runtime
    db_path: str
    run_env: str
    log_level: str

    # Logging/tracing
    llm_trace: bool = False
    llm_log_path: str = "logs/llm_calls.jsonl"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_env()
    ai_enabled = _as_bool(os.getenv("AI_ENABLED"))
    ai_provider = os.getenv("AI_PROVIDER", "stub").lower()
    openai_api_key = os.getenv("OPENAI_API_KEY")
    ai_api_key = os.getenv("AI_API_KEY")

    if ai_enabled:
        if ai_provider == "openai" and not openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY required when AI_PROVIDER=openai and AI_ENABLED=true"
            )
        if ai_provider == "http" and not ai_api_key:
            raise ConfigurationError(
                "AI_API_KEY required when AI_PROVIDER=http and AI_ENABLED=true"
            )
    return Settings(
        ai_enabled=ai_enabled,
        ai_provider=ai_provider,
        openai_api_key=openai_api_key,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        ai_api_url=os.getenv("AI_API_URL", "https://api.groq.com/openai/v1/chat/completions"),
        ai_api_key=ai_api_key,
        ai_model=os.getenv("AI_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct"),
        ai_temperature=float(os.getenv("AI_TEMPERATURE", "0.1")),
        ai_max_tokens=int(os.getenv("AI_MAX_TOKENS", "4000")),
        http_timeout_seconds=int(os.getenv("HTTP_TIMEOUT_SECONDS", "120")),
        chunk_size=int(os.getenv("CHUNK_SIZE", "50000")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        retry_base_delay_seconds=float(os.getenv("RETRY_BASE_DELAY_SECONDS", "10")),
        chunk_max_retries=int(os.getenv("CHUNK_MAX_RETRIES", "2")),
        chunk_retry_delay_seconds=float(os.getenv("CHUNK_RETRY_DELAY_SECONDS", "2")),
        inter_chunk_delay_seconds=float(os.getenv("INTER_CHUNK_DELAY_SECONDS", "1.5")),
        job_tick_seconds=float(os.getenv("JOB_TICK_SECONDS", "120")),
        scratch_dir=os.getenv("SCRATCH_DIR", os.path.join("uploads", "chunks")),
        db_path=os.getenv("DB_PATH", "people.db"),
        run_env=os.getenv("RUN_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        llm_trace=_as_bool(os.getenv("LLM_TRACE")),
        llm_log_path=os.getenv("LLM_LOG_PATH", "logs/llm_calls.jsonl"),
    )
