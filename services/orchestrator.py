from __future__ import annotations

import hashlib
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from errors import ValidationError
from extractors import extract_raw_text
from models import (
    AnalysisRequest,
    ExtractionMetadata,
    ExtractionResult,
    PartialResult,
    PersonRecord,
    Scope,
    ScopedPersonRecord,
)
from pipelines.runner import Pipeline, RunContext
from pipelines.steps import DedupePeople, PersistPeople
from ports.repos import PersonGatewayPort
from services.analysis_client import AIAnalysisClient
from utils.logging_setup import bind


logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Person data extracted successfully"
EXISTING_MESSAGE = "Person data extracted successfully (from existing data)"
EMPTY_MESSAGE = "No person data found"
EMPTY_CONFIDENCE = 0.1


def make_batch_id(text: str, scope: Scope, from_file: bool) -> str:
    """Content-derived batch id; identical text in the same scope gives the same id."""
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()
    h8, s8 = digest[:8], digest[8:16]
    if scope.is_user:
        prefix = f"user-{scope.user_id}" if from_file else f"user-text-{scope.user_id}"
        return f"{prefix}-{h8}-{s8}"
    return f"{h8}-{s8}" if from_file else f"text-{h8}-{s8}"


class PersistingSink:
    """Dedupe and persist each analysis increment as soon as it arrives."""

    def __init__(self, gateway: PersonGatewayPort, scope: Scope, started_at: Optional[str] = None):
        self.scope = scope
        self.started_at = started_at or datetime.now(timezone.utc).isoformat()
        self.pipeline = Pipeline([DedupePeople(gateway), PersistPeople(gateway)])
        self.persisted: List[PersonRecord] = []

    def accept(self, partial: PartialResult) -> None:
        ctx = RunContext(
            scope=self.scope,
            batch_id=partial.batch_id,
            chunk_index=partial.chunk_index,
            total_chunks=partial.total_chunks,
            people=list(partial.people),
            meta={
                "extraction_type": partial.extraction_type,
                "source": partial.source,
                "description": partial.description,
                "confidence": partial.confidence,
                "started_at": self.started_at,
            },
        )
        out = self.pipeline.run(ctx)
        self.persisted.extend(out.meta.get("persisted", []))


class ExtractionOrchestrator:
    """Synchronous extraction: idempotent per batch, persisted per chunk."""

    def __init__(self, gateway: PersonGatewayPort, analysis: AIAnalysisClient):
        self.gateway = gateway
        self.analysis = analysis

    def extract_file(
        self,
        data: bytes,
        filename: str,
        meta: Optional[AnalysisRequest] = None,
        scope: Optional[Scope] = None,
    ) -> ExtractionResult:
        if not data:
            raise ValidationError("No file uploaded")
        kind = Path(filename or "").suffix
        text = extract_raw_text(data, kind)
        meta = meta or AnalysisRequest(source=filename or "file_upload")
        return self._extract(text, meta, scope or Scope.shared(), from_file=True)

    def extract_text(
        self,
        raw_text: str,
        meta: Optional[AnalysisRequest] = None,
        scope: Optional[Scope] = None,
    ) -> ExtractionResult:
        return self._extract(raw_text, meta or AnalysisRequest(), scope or Scope.shared(), from_file=False)

    def _extract(self, text: str, meta: AnalysisRequest, scope: Scope, from_file: bool) -> ExtractionResult:
        if not text or not text.strip():
            raise ValidationError("No text provided" if not from_file else "No text could be extracted from the file")

        t0 = time.time()
        batch_id = make_batch_id(text, scope, from_file)
        log = bind(logger, batch_id=batch_id, step="extract")
        log.info("Extracting %d characters into %s", len(text), scope.key)

        if self.gateway.batch_exists(scope, batch_id):
            log.info("Batch already processed, returning stored records")
            existing = self.gateway.list_by_batch(scope, batch_id)
            if not existing:
                # Analyzed before but nothing new was stored
                return self._result([], meta, scope, batch_id, EMPTY_CONFIDENCE, EMPTY_MESSAGE, t0, from_existing=True)
            confidence = sum(p.confidence for p in existing) / len(existing)
            return self._result(
                existing, meta, scope, batch_id, confidence, EXISTING_MESSAGE, t0, from_existing=True
            )

        request = meta.model_copy(update={"batch_id": batch_id})
        sink = PersistingSink(self.gateway, scope)
        analysis = self.analysis.analyze(text, request, sink=sink)
        self.gateway.mark_batch(scope, batch_id)

        if not analysis.people:
            log.info("No people found", extra={"status": "empty"})
            return self._result([], meta, scope, batch_id, EMPTY_CONFIDENCE, EMPTY_MESSAGE, t0)

        if scope.is_user:
            people = sink.persisted
            in_master = sum(1 for p in people if isinstance(p, ScopedPersonRecord) and p.is_duplicate_in_master)
            unique = len(people) - in_master
            message = (
                f"{SUCCESS_MESSAGE}. {in_master} records already exist in master data, "
                f"{unique} are unique to you."
            )
            return self._result(
                people, meta, scope, batch_id, analysis.confidence, message, t0,
                duplicates_in_master=in_master, unique_to_user=unique,
            )

        people = [p.model_copy(update={"batch_id": batch_id}) for p in analysis.people]
        return self._result(people, meta, scope, batch_id, analysis.confidence, SUCCESS_MESSAGE, t0)

    @staticmethod
    def _result(
        people: List[PersonRecord],
        meta: AnalysisRequest,
        scope: Scope,
        batch_id: str,
        confidence: float,
        message: str,
        t0: float,
        from_existing: bool = False,
        duplicates_in_master: Optional[int] = None,
        unique_to_user: Optional[int] = None,
    ) -> ExtractionResult:
        duration_ms = int((time.time() - t0) * 1000)
        logger.info(
            "%s: %d people",
            message,
            len(people),
            extra={"batch_id": batch_id, "step": "extract", "status": "ok", "duration_ms": duration_ms},
        )
        if scope.is_user and duplicates_in_master is None:
            duplicates_in_master = sum(
                1 for p in people if isinstance(p, ScopedPersonRecord) and p.is_duplicate_in_master
            )
            unique_to_user = len(people) - duplicates_in_master
        return ExtractionResult(
            success=True,
            people=people,
            metadata=ExtractionMetadata(
                total_people=len(people),
                extraction_type=meta.extraction_type,
                source=meta.source,
                processed_at=datetime.now(timezone.utc).isoformat(),
                confidence=confidence,
                batch_id=batch_id,
            ),
            message=message,
            processing_time=f"{duration_ms}ms",
            from_existing=from_existing,
            user_id=scope.user_id if scope.is_user else None,
            duplicates_in_master=duplicates_in_master,
            unique_to_user=unique_to_user,
        )
