"""Celery task for CSV bulk imports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.core.config import get_settings
from assetdesk.db.models.import_job import ImportJob
from assetdesk.db.session import SessionLocal
from assetdesk.services import csv_ingest
from assetdesk.services.csv_ingest import CsvParseError
from assetdesk.services.progress_tracker import publish_progress
from assetdesk.services.query_cache import QueryCache
from assetdesk.storage.uploads import discard_upload, load_upload
from assetdesk.utils.redis_client import get_redis
from assetdesk.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

PARSE_FAILED_MESSAGE = "อ่านไฟล์ CSV ล้มเหลว"
REFERENCE_FAILED_MESSAGE = "ไม่สามารถดึงข้อมูลอ้างอิงได้"
IMPORT_FAILED_MESSAGE = "นำเข้าข้อมูลไม่สำเร็จ"
IMPORT_DONE_MESSAGE = "เสร็จสิ้น!"


def _fail(job: ImportJob, session: Session, message: str) -> None:
    session.rollback()
    job.status = "failed"
    job.error_message = message
    job.finished_at = datetime.now(timezone.utc)
    session.commit()
    publish_progress(
        job.id,
        0,
        message=message,
        status="failed",
        meta={"success_count": job.success_count or 0, "errors": job.errors or []},
    )


def process_import(
    job_id: str,
    session: Session,
    client: HostedDbClient,
    cache: QueryCache | None = None,
) -> dict | None:
    """Run one import job end to end and record the outcome on the job row."""
    job: ImportJob | None = session.get(ImportJob, job_id)
    if not job:
        logger.warning(f"Import job {job_id} not found")
        return None

    runner = csv_ingest.IMPORT_RUNNERS[job.kind]
    settings = get_settings()

    job.status = "running"
    job.started_at = datetime.now(timezone.utc)
    session.commit()
    publish_progress(job_id, 0, message="กำลังวิเคราะห์ข้อมูล...", status="running")

    def on_progress(percent: int, processed: int, total: int) -> None:
        job.processed_rows = processed
        job.total_rows = total
        session.commit()
        publish_progress(
            job_id,
            percent,
            message=f"กำลังบันทึกข้อมูล {processed}/{total}",
            status="running",
            meta={"processed": processed, "total": total},
        )

    try:
        content = load_upload(job_id, job.uploaded_file_path)
        result = runner(
            client,
            content,
            cache=cache,
            chunk_size=settings.import_chunk_size,
            on_progress=on_progress,
        )
    except CsvParseError as exc:
        logger.warning(f"Import job {job_id} could not parse upload: {exc}")
        _fail(job, session, f"{PARSE_FAILED_MESSAGE}: {exc}")
        return None
    except RemoteApiError as exc:
        logger.error(f"Import job {job_id} remote error: {exc}", exc_info=True)
        _fail(job, session, f"{REFERENCE_FAILED_MESSAGE}: {exc.message}")
        raise
    except Exception as exc:
        logger.error(f"Import job {job_id} failed: {exc}", exc_info=True)
        _fail(job, session, IMPORT_FAILED_MESSAGE)
        raise

    job.status = "completed"
    job.success_count = result.success_count
    job.errors = list(result.errors)
    job.finished_at = datetime.now(timezone.utc)
    session.commit()

    publish_progress(
        job_id,
        100,
        message=IMPORT_DONE_MESSAGE,
        status="completed",
        meta=result.to_dict(),
    )
    return result.to_dict()


@celery_app.task(bind=True, name="assetdesk.workers.tasks.import_records")
def import_records_task(self, job_id: str, access_token: str | None = None):
    """Worker entry point; owns the session, client and staged file lifecycles.

    ``access_token`` is the uploader's token, so the bulk procedures run under
    their row-level security instead of the configured key.
    """
    session = SessionLocal()
    settings = get_settings()
    cache = QueryCache(get_redis(), settings.query_cache_ttl)
    file_path = None
    try:
        job = session.get(ImportJob, job_id)
        file_path = job.uploaded_file_path if job else None
        with HostedDbClient.from_settings(settings, access_token=access_token) as client:
            return process_import(job_id, session, client, cache)
    finally:
        discard_upload(job_id, file_path)
        session.close()
