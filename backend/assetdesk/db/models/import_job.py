"""Track CSV import runs for the status endpoint."""

import uuid

from sqlalchemy import JSON, Column, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from assetdesk.db.base import Base


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    original_filename = Column(Text)
    uploaded_file_path = Column(Text, nullable=False)
    total_rows = Column(Integer, default=0)
    processed_rows = Column(Integer, default=0)
    success_count = Column(Integer, default=0)
    errors = Column(JSON, default=list)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
