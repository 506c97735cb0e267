from __future__ import annotations

from pipelines.runner import RunContext
from ports.repos import PersonGatewayPort
from services.deduplication import DeduplicationEngine


class DedupePeople:
    def __init__(self, gateway: PersonGatewayPort) -> None:
        self.engine = DeduplicationEngine(gateway)

    def run(self, ctx: RunContext) -> RunContext:
        before = len(ctx.people)
        ctx.people = self.engine.filter_new(ctx.people, ctx.scope)
        ctx.meta["skipped_duplicates"] = before - len(ctx.people)
        return ctx
