"""Database models package."""
from assetdesk.db.models.import_job import ImportJob

__all__ = ["ImportJob"]
