from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, List, Optional

from models import PersonRecord, Scope
from utils.logging_setup import init_logging


logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """One analysis increment on its way to storage."""

    scope: Scope = field(default_factory=Scope.shared)
    batch_id: Optional[str] = None
    chunk_index: int = 0
    total_chunks: int = 1
    people: List[PersonRecord] = field(default_factory=list)
    meta: dict = field(default_factory=dict)


class Step(Protocol):
    def run(self, ctx: RunContext) -> RunContext:
        ...


class Pipeline:
    def __init__(self, steps: List[Step]):
        self.steps = steps

    def run(self, ctx: RunContext) -> RunContext:
        # Make logging idempotent for any direct runner use
        init_logging()
        for step in self.steps:
            name = type(step).__name__
            t0 = time.time()
            ctx = step.run(ctx)
            logger.debug(
                "%s done, %d people remain",
                name,
                len(ctx.people),
                extra={"step": name, "batch_id": ctx.batch_id or "-", "duration_ms": int((time.time() - t0) * 1000)},
            )
        return ctx
