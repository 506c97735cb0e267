from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.person_record import PersonRecord


class AnalysisRequest(BaseModel):
    """Extraction metadata sent along with a text to the provider."""

    extraction_type: str = "general"
    source: str = "text_input"
    description: Optional[str] = None
    batch_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class AnalysisResult(BaseModel):
    people: List[PersonRecord] = Field(default_factory=list)
    confidence: float = 0.0
    summary: str = ""


class PartialResult(BaseModel):
    """One analyzed increment (a chunk, or the whole text) handed to a sink."""

    people: List[PersonRecord]
    confidence: float
    chunk_index: int
    total_chunks: int
    batch_id: Optional[str] = None
    extraction_type: str = "general"
    source: str = ""
    description: Optional[str] = None
