from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


JobStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class BackgroundJob(BaseModel):
    id: str
    source_path: str
    extraction_type: str = "general"
    source: str = ""
    description: Optional[str] = None
    status: JobStatus = "pending"
    total_chunks: int
    processed_chunks: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
