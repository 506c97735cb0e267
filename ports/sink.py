from __future__ import annotations

from typing import Protocol

from models import PartialResult


class PartialResultSink(Protocol):
    """Consumer of analysis increments, called once per successful chunk."""

    def accept(self, partial: PartialResult) -> None:
        ...
