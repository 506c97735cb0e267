from __future__ import annotations

import pytest

from errors import TextExtractionError


def test_builtin_kinds_registered():
    # Import package to trigger registration
    import extractors  # noqa: F401
    from extractors.registry import available_kinds

    kinds = available_kinds().keys()
    assert {"txt", "text", "md", "csv"} <= set(kinds)


def test_plain_text_and_kind_normalization():
    from extractors import extract_raw_text

    assert extract_raw_text("Jane Doé, CTO".encode("utf-8"), ".TXT") == "Jane Doé, CTO"


def test_csv_rows_become_header_value_lines():
    from extractors import extract_raw_text

    data = b"Name,Email,Title\nJane Doe,jane@x.com,CTO\n,,\nBob,,Engineer\n"
    text = extract_raw_text(data, "csv")
    assert text.splitlines() == [
        "CSV columns: Name, Email, Title",
        "Name: Jane Doe, Email: jane@x.com, Title: CTO",
        "Name: Bob, Title: Engineer",
    ]


def test_unknown_kind_and_empty_output():
    from extractors import extract_raw_text, register

    with pytest.raises(TextExtractionError, match="Unsupported file type"):
        extract_raw_text(b"data", "docx")
    with pytest.raises(TextExtractionError, match="No text could be extracted"):
        extract_raw_text(b"   ", "txt")

    def _broken(data: bytes) -> str:
        raise RuntimeError("corrupt")

    register("broken", _broken)
    with pytest.raises(TextExtractionError, match="corrupt"):
        extract_raw_text(b"x", "broken")
