from .registry import register, get_extractor, extract_raw_text, available_kinds
from .plain_text import extract_plain_text, extract_csv_text

for _kind in ("txt", "text", "md"):
    register(_kind, extract_plain_text)
register("csv", extract_csv_text)

__all__ = [
    "register",
    "get_extractor",
    "extract_raw_text",
    "available_kinds",
]
