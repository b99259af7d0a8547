"""Import job status payloads."""

from datetime import datetime
from pydantic import BaseModel, Field


class ImportJobStatus(BaseModel):
    id: str
    kind: str = Field(..., description="products|employees")
    status: str = Field(..., description="pending|running|failed|completed")
    progress: int | None = Field(None, description="0-100 for UI progress bars")
    message: str | None = None
    total_rows: int | None = None
    processed_rows: int | None = None
    success_count: int = 0
    errors: list[str] = Field(default_factory=list)
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
