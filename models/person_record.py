from __future__ import annotations

import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


RecordStatus = Literal["pending", "processed", "failed"]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Person fields the provider is asked for, in prompt order
PERSON_FIELDS: tuple[str, ...] = (
    "name",
    "email",
    "position",
    "company",
    "phone",
    "location",
    "department",
    "linkedin",
    "website",
    "additional_info",
)


def clean_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clean_email(value: Any) -> str:
    email = clean_string(value)
    return email if EMAIL_RE.match(email) else ""


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(0.0, min(1.0, float(value)))


class PersonRecord(BaseModel):
    """App/DB record shape: one extracted person plus batch provenance."""

    id: Optional[int] = None
    name: str
    email: str = ""
    position: str = ""
    company: str = ""
    phone: str = ""
    location: str = ""
    department: str = ""
    linkedin: str = ""
    website: str = ""
    additional_info: str = Field(default="", alias="additionalInfo")

    confidence: float = 0.5
    source: str = ""
    extraction_type: str = "general"
    description: Optional[str] = None
    status: RecordStatus = "processed"
    batch_id: Optional[str] = None
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    created_at: Optional[str] = None
    processing_started_at: Optional[str] = None
    processing_completed_at: Optional[str] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator(
        "name", "position", "company", "phone", "location", "department",
        "linkedin", "website", "additional_info", "source",
        mode="before",
    )
    @classmethod
    def _trim(cls, value: Any) -> str:
        return clean_string(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> str:
        return clean_email(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float:
        return clamp_confidence(value)

    def person_fields(self) -> dict[str, str]:
        """Only the extracted person attributes, without provenance."""
        return {f: getattr(self, f) for f in PERSON_FIELDS}


class ScopedPersonRecord(PersonRecord):
    """A person record owned by one user, cross-referenced to the shared corpus."""

    user_id: str
    user_email: Optional[str] = None
    is_duplicate_in_master: bool = False
    master_reference_id: Optional[int] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value: Any) -> str:
        return clean_string(value)
