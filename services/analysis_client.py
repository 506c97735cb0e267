from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from config.settings import Settings, get_settings
from errors import AIProviderError, AIProviderRateLimited, ExtractionError
from models.analysis import AnalysisRequest, AnalysisResult, PartialResult
from models.person_record import PersonRecord
from ports.llm import LLMClientPort
from ports.sink import PartialResultSink
from services.chunking import split_text
from services.response_parser import parse_model_response


logger = logging.getLogger(__name__)

USE_CASE = "person_extraction"

SYSTEM_PROMPT = (
    "You are an expert HR data extraction AI. Extract person information from text "
    "and return structured JSON data."
)


def build_prompt(text: str, request: AnalysisRequest) -> str:
    """Create the extraction prompt for one text (deterministic for equal inputs)."""
    description = f"DESCRIPTION: {request.description}\n" if request.description else ""
    return f"""Extract ALL person information from the following text and return a JSON response.

EXTRACTION TYPE: {request.extraction_type}
SOURCE: {request.source}
{description}
TEXT TO ANALYZE:
{text}

INSTRUCTIONS:
- Extract every person mentioned in the text, even with incomplete data
- Look for patterns like: Name, Email, Title, Company
- Scan table rows, lists and any structured data

Return a JSON response in this exact format:
{{
  "people": [
    {{
      "name": "Full Name",
      "email": "email@example.com",
      "position": "Job Title",
      "company": "Company Name",
      "phone": "Phone Number (optional)",
      "location": "Location (optional)",
      "department": "Department (optional)",
      "linkedin": "LinkedIn URL (optional)",
      "website": "Website URL (optional)",
      "additionalInfo": "Any additional relevant information (optional)"
    }}
  ],
  "confidence": 0.85,
  "summary": "Brief summary of what was extracted"
}}

RULES:
1. If information is missing, use null or an empty string
2. Trim whitespace; use full names when available
3. Emails must be valid addresses
4. Be conservative with confidence scores (0.0 to 1.0)
5. Return valid JSON only, no additional text
6. Mention how many people you found in the summary"""


def person_key(person: PersonRecord) -> str:
    """Identity used to merge people found in different chunks."""
    if person.email:
        return person.email.lower()
    return f"{person.name.lower()}-{person.company.lower()}"


def dedupe_people(people: List[PersonRecord]) -> List[PersonRecord]:
    seen: set[str] = set()
    unique: List[PersonRecord] = []
    for person in people:
        key = person_key(person)
        if key not in seen:
            seen.add(key)
            unique.append(person)
    if len(unique) != len(people):
        logger.info("Removed %d duplicate people across chunks", len(people) - len(unique))
    return unique


class AIAnalysisClient:
    """Send text to the AI provider with retry/backoff and recover person records.

    Texts longer than the chunk size are split on line boundaries and analyzed
    chunk by chunk; a chunk that keeps failing is skipped. Every successful
    increment with people is handed to the optional sink right away.
    """

    def __init__(
        self,
        llm: LLMClientPort,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        s = settings or get_settings()
        self.llm = llm
        self.chunk_size = s.chunk_size
        self.max_retries = s.max_retries
        self.base_delay = s.retry_base_delay_seconds
        self.chunk_max_retries = s.chunk_max_retries
        self.chunk_retry_delay = s.chunk_retry_delay_seconds
        self.inter_chunk_delay = s.inter_chunk_delay_seconds
        self.sleep = sleep

    def analyze(
        self,
        text: str,
        request: AnalysisRequest,
        sink: Optional[PartialResultSink] = None,
    ) -> AnalysisResult:
        t0 = time.time()
        try:
            if len(text) > self.chunk_size:
                logger.info("Text too large (%d chars), splitting into chunks", len(text), extra={"batch_id": request.batch_id or "-"})
                return self._analyze_in_chunks(text, request, sink)

            result = self.analyze_single(text, request)
            if sink is not None and result.people:
                sink.accept(self._partial(result, request, chunk_index=0, total_chunks=1))
            return result
        except ExtractionError as e:
            logger.error(
                "Analysis failed after %dms",
                int((time.time() - t0) * 1000),
                extra={"status": "error", "error": str(e), "batch_id": request.batch_id or "-"},
            )
            raise
        except Exception as e:
            raise AIProviderError(f"AI analysis failed: {e}", e) from e

    def analyze_single(self, text: str, request: AnalysisRequest) -> AnalysisResult:
        """One provider request with exponential backoff on 429 and transient errors."""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(text, request)},
        ]
        retry_count = 0
        while retry_count <= self.max_retries:
            attempt = retry_count + 1
            logger.info("Sending request to AI provider (attempt %d/%d)", attempt, self.max_retries + 1)
            try:
                content = self.llm.complete(use_case=USE_CASE, messages=messages)
            except AIProviderRateLimited:
                delay = self.base_delay * (2 ** retry_count)
                retry_count += 1
                if retry_count > self.max_retries:
                    break
                logger.warning("Rate limited. Waiting %.1fs before retry %d", delay, retry_count)
                self.sleep(delay)
                continue
            except AIProviderError as e:
                logger.error("Error on attempt %d: %s", attempt, e)
                if retry_count >= self.max_retries:
                    raise
                delay = self.base_delay * (2 ** retry_count)
                logger.info("Retrying in %.1fs", delay)
                self.sleep(delay)
                retry_count += 1
                continue

            result = parse_model_response(content)
            logger.info("Found %d people with confidence %.2f", len(result.people), result.confidence)
            return result

        raise AIProviderError("Max retries exceeded", status_code=429)

    def _analyze_in_chunks(
        self,
        text: str,
        request: AnalysisRequest,
        sink: Optional[PartialResultSink],
    ) -> AnalysisResult:
        t0 = time.time()
        chunks = [c for c in split_text(text, self.chunk_size) if c.strip()]
        total = len(chunks)
        logger.info("Split %d characters into %d chunks", len(text), total)

        all_people: List[PersonRecord] = []
        total_confidence = 0.0
        processed = 0
        failed = 0

        for i, chunk in enumerate(chunks):
            logger.info("Processing chunk %d/%d (%d chars)", i + 1, total, len(chunk))
            chunk_request = request.model_copy(update={"source": f"{request.source} - Chunk {i + 1}/{total}"})
            result = self._analyze_chunk(chunk, chunk_request, i)

            if result is None:
                failed += 1
            else:
                all_people.extend(result.people)
                total_confidence += result.confidence
                processed += 1
                logger.info("Chunk %d completed - found %d people (running total %d)", i + 1, len(result.people), len(all_people))
                if sink is not None and result.people:
                    sink.accept(self._partial(result, request, chunk_index=i, total_chunks=total))

            if i < total - 1:
                self.sleep(self.inter_chunk_delay)

        unique = dedupe_people(all_people)
        avg_confidence = total_confidence / processed if processed else 0.0
        logger.info(
            "Chunked analysis completed: %d/%d chunks, %d failed, %d unique people",
            processed, total, failed, len(unique),
            extra={"duration_ms": int((time.time() - t0) * 1000), "batch_id": request.batch_id or "-"},
        )
        return AnalysisResult(
            people=unique,
            confidence=avg_confidence,
            summary=f"Processed {processed}/{total} chunks successfully, found {len(unique)} unique people",
        )

    def _analyze_chunk(self, chunk: str, request: AnalysisRequest, index: int) -> Optional[AnalysisResult]:
        retry_count = 0
        while retry_count <= self.chunk_max_retries:
            if retry_count > 0:
                logger.info("Retry %d/%d for chunk %d", retry_count, self.chunk_max_retries, index + 1)
                self.sleep(self.chunk_retry_delay * retry_count)
            try:
                return self.analyze_single(chunk, request)
            except AIProviderError as e:
                retry_count += 1
                logger.error("Chunk %d attempt %d failed: %s", index + 1, retry_count, e)
        logger.error("Chunk %d failed after %d retries, skipping", index + 1, self.chunk_max_retries)
        return None

    @staticmethod
    def _partial(result: AnalysisResult, request: AnalysisRequest, chunk_index: int, total_chunks: int) -> PartialResult:
        return PartialResult(
            people=result.people,
            confidence=result.confidence,
            chunk_index=chunk_index,
            total_chunks=total_chunks,
            batch_id=request.batch_id,
            extraction_type=request.extraction_type,
            source=request.source,
            description=request.description,
        )
