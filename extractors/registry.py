from __future__ import annotations

import logging
from typing import Callable, Dict

from errors import TextExtractionError


logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], str]

_REGISTRY: Dict[str, Extractor] = {}


def normalize_kind(file_kind: str) -> str:
    return (file_kind or "").strip().lower().lstrip(".")


def register(file_kind: str, extractor: Extractor) -> None:
    _REGISTRY[normalize_kind(file_kind)] = extractor


def get_extractor(file_kind: str) -> Extractor:
    kind = normalize_kind(file_kind)
    if kind not in _REGISTRY:
        raise TextExtractionError(f"Unsupported file type: {kind or '<none>'}")
    return _REGISTRY[kind]


def available_kinds() -> Dict[str, Extractor]:
    return dict(_REGISTRY)


def extract_raw_text(data: bytes, file_kind: str) -> str:
    """Raw text of a file's bytes, via the extractor registered for its kind."""
    extractor = get_extractor(file_kind)
    try:
        text = extractor(data)
    except TextExtractionError:
        raise
    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from {normalize_kind(file_kind)} file: {e}", e) from e
    if not text or not text.strip():
        raise TextExtractionError("No text could be extracted from the file")
    logger.info("Extracted %d characters from %s file", len(text), normalize_kind(file_kind))
    return text
