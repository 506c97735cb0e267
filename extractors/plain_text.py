from __future__ import annotations

import csv
import io
from typing import List


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def extract_plain_text(data: bytes) -> str:
    return _decode(data)


def extract_csv_text(data: bytes) -> str:
    """One line per row: `header: value` pairs joined by commas."""
    reader = csv.DictReader(io.StringIO(_decode(data)))
    headers = [h for h in (reader.fieldnames or []) if h]
    lines: List[str] = [f"CSV columns: {', '.join(headers)}"]
    for row in reader:
        pairs = [f"{h}: {(row.get(h) or '').strip()}" for h in headers if (row.get(h) or "").strip()]
        if pairs:
            lines.append(", ".join(pairs))
    return "\n".join(lines) if len(lines) > 1 else ""
