from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from models.person_record import PersonRecord


class ExtractionMetadata(BaseModel):
    total_people: int
    extraction_type: str
    source: str
    processed_at: str
    confidence: float
    batch_id: str


class ExtractionResult(BaseModel):
    """Result of one synchronous extraction call."""

    success: bool = True
    people: List[SerializeAsAny[PersonRecord]] = Field(default_factory=list)
    metadata: ExtractionMetadata
    message: str
    processing_time: str
    from_existing: bool = False

    # User-scope extras
    user_id: Optional[str] = None
    duplicates_in_master: Optional[int] = None
    unique_to_user: Optional[int] = None


class SearchQuery(BaseModel):
    text: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    batch_id: Optional[str] = None
    is_duplicate_in_master: Optional[bool] = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")


class SearchPage(BaseModel):
    records: List[SerializeAsAny[PersonRecord]]
    total: int
    limit: int
    offset: int


class ScopeStats(BaseModel):
    total_records: int = 0
    processed_records: int = 0
    pending_records: int = 0
    failed_records: int = 0
    total_batches: int = 0
    unique_emails: int = 0
    duplicates_in_master: Optional[int] = None
    records_by_type: Dict[str, int] = Field(default_factory=dict)
    records_by_source: Dict[str, int] = Field(default_factory=dict)
    last_processed: Optional[str] = None
