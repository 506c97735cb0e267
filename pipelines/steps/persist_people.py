from __future__ import annotations

import logging
from datetime import datetime, timezone

from pipelines.runner import RunContext
from ports.repos import PersonGatewayPort


logger = logging.getLogger(__name__)


class PersistPeople:
    """Tag one increment with its batch provenance and write it once."""

    def __init__(self, gateway: PersonGatewayPort) -> None:
        self.gateway = gateway

    def run(self, ctx: RunContext) -> RunContext:
        ctx.meta["persisted"] = []
        ctx.meta["processed_people"] = 0
        if not ctx.people:
            return ctx

        now = datetime.now(timezone.utc).isoformat()
        started = ctx.meta.get("started_at", now)
        tagged = [
            p.model_copy(
                update={
                    "batch_id": ctx.batch_id,
                    "chunk_index": ctx.chunk_index,
                    "total_chunks": ctx.total_chunks,
                    "extraction_type": ctx.meta.get("extraction_type", p.extraction_type),
                    "source": ctx.meta.get("source", p.source),
                    "description": ctx.meta.get("description", p.description),
                    "confidence": ctx.meta.get("confidence", p.confidence),
                    "status": "processed",
                    "processing_started_at": started,
                    "processing_completed_at": now,
                }
            )
            for p in ctx.people
        ]
        if ctx.batch_id:
            persisted = self.gateway.write_chunk(ctx.scope, ctx.batch_id, ctx.chunk_index, tagged)
        else:
            persisted = self.gateway.insert_records(ctx.scope, tagged)
        if persisted is None:
            logger.info(
                "Chunk %d of %s already written, skipping",
                ctx.chunk_index,
                ctx.batch_id,
                extra={"batch_id": ctx.batch_id, "step": "persist_people"},
            )
            return ctx

        ctx.meta["persisted"] = persisted
        ctx.meta["processed_people"] = len(persisted)
        logger.info(
            "Persisted %d people for chunk %d/%d",
            len(persisted),
            ctx.chunk_index + 1,
            ctx.total_chunks,
            extra={"batch_id": ctx.batch_id or "-", "step": "persist_people", "status": "ok"},
        )
        return ctx
