from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional, TextIO

from config.settings import get_settings


_INITIALIZED: bool = False

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("openai", "httpx", "httpcore", "urllib3")

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "step=%(step)s status=%(status)s duration_ms=%(duration_ms)s provider=%(provider)s "
    "batch_id=%(batch_id)s job_id=%(job_id)s error=%(error)s"
)


class SafeExtraFormatter(logging.Formatter):
    """Formatter that fills structured fields a record did not set with '-'."""

    FIELDS: tuple[str, ...] = ("step", "status", "duration_ms", "provider", "batch_id", "job_id", "error")

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        for key in self.FIELDS:
            if not hasattr(record, key):
                setattr(record, key, "-")
        return super().format(record)


class ContextAdapter(logging.LoggerAdapter):
    """Logger bound to a batch or job; per-call extra wins over bound fields."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def bind(logger: logging.Logger, **context: Any) -> ContextAdapter:
    return ContextAdapter(logger, {k: v for k, v in context.items() if v is not None})


def init_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """Install one stdout handler on the root logger (idempotent)."""
    global _INITIALIZED
    if _INITIALIZED:
        return

    log_level = getattr(logging, (level or get_settings().log_level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(SafeExtraFormatter(fmt=LOG_FORMAT))
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _INITIALIZED = True
