"""Endpoints for CSV import orchestration and tracking."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Header, HTTPException, Response, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assetdesk.api.dependencies.remote import bearer_token
from assetdesk.api.schemas.job import ImportJobStatus
from assetdesk.db.session import get_db
from assetdesk.db.models.import_job import ImportJob
from assetdesk.services.csv_ingest import (
    EMPLOYEES_KIND,
    PRODUCTS_KIND,
    TEMPLATES,
    CsvParseError,
    build_template,
    inspect_upload,
)
from assetdesk.services.progress_tracker import fetch_progress, publish_progress
from assetdesk.storage.uploads import discard_upload, save_upload, store_in_redis
from assetdesk.workers.tasks.import_records import import_records_task

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_job(job: ImportJob, progress_payload: dict | None) -> ImportJobStatus:
    """Combine DB state + cached progress snapshot into a response schema."""
    progress_payload = progress_payload or {}

    progress = progress_payload.get("progress")
    if progress is None:
        if job.status == "completed":
            progress = 100
        elif job.total_rows:
            progress = round((job.processed_rows or 0) / job.total_rows * 100)

    message = progress_payload.get("message")
    if not message:
        total_display = job.total_rows if job.total_rows else "?"
        message = f"Processed {job.processed_rows or 0}/{total_display} rows"

    return ImportJobStatus(
        id=job.id,
        kind=job.kind,
        status=progress_payload.get("status") or job.status,
        progress=progress,
        message=message,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        success_count=job.success_count or 0,
        errors=list(job.errors or []),
        error_message=job.error_message,
        started_at=job.started_at or job.created_at,
        finished_at=job.finished_at,
    )


async def _enqueue(
    kind: str,
    file: UploadFile,
    db: Session,
    access_token: str | None = None,
) -> ImportJobStatus:
    """Stage the upload, record the job and queue it to run as the uploader."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="กรุณาเลือกไฟล์",
        )
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="รองรับเฉพาะไฟล์ CSV",
        )

    content = await file.read()
    try:
        row_count = inspect_upload(content, kind)
    except CsvParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"อ่านไฟล์ CSV ล้มเหลว: {exc}",
        ) from exc

    try:
        job = ImportJob(
            kind=kind,
            original_filename=file.filename,
            uploaded_file_path="pending",
            total_rows=row_count,
        )
        db.add(job)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ไม่สามารถสร้างงานนำเข้าได้",
        ) from exc

    staged_path = None
    try:
        staged_path = save_upload(content, job.id, file.filename)
    except OSError as exc:
        logger.warning(f"Failed to save file locally: {exc}, will use Redis only")
    redis_stored = store_in_redis(content, job.id)

    if staged_path is None and not redis_stored:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ไม่สามารถบันทึกไฟล์ได้",
        )
    job.uploaded_file_path = str(staged_path) if staged_path else f"redis:{job.id}"
    db.commit()

    try:
        publish_progress(job.id, 0, "Queued", status="pending", meta={})
        import_records_task.apply_async(
            args=(job.id,),
            kwargs={"access_token": access_token},
            queue="imports",
        )
    except Exception as exc:
        logger.error(f"Error enqueueing import task: {exc}", exc_info=True)
        job.status = "failed"
        job.error_message = "Failed to start import process"
        db.commit()
        discard_upload(job.id, job.uploaded_file_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ไม่สามารถเริ่มการนำเข้าได้",
        ) from exc

    logger.info(f"Created {kind} import job {job.id} for file {file.filename}")
    return serialize_job(job, progress_payload={"progress": 0, "status": "pending"})


@router.post(
    "/products",
    summary="Start a product CSV import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportJobStatus,
)
async def import_products(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
) -> ImportJobStatus:
    return await _enqueue(PRODUCTS_KIND, file, db, bearer_token(authorization))


@router.post(
    "/employees",
    summary="Start an employee CSV import",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportJobStatus,
)
async def import_employees(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
) -> ImportJobStatus:
    return await _enqueue(EMPLOYEES_KIND, file, db, bearer_token(authorization))


@router.get("/templates/{kind}", summary="Download a CSV template")
async def download_template(kind: str) -> Response:
    if kind not in TEMPLATES:
        raise HTTPException(status_code=404, detail="ไม่พบ Template")
    return Response(
        content=build_template(kind),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="template_import_{kind}.csv"'
        },
    )


@router.get(
    "/{job_id}",
    summary="Check import progress",
    response_model=ImportJobStatus,
)
async def get_import_status(
    job_id: str,
    db: Session = Depends(get_db),
) -> ImportJobStatus:
    """Expose latest processing stats to power UI progress bars."""
    try:
        job = db.get(ImportJob, job_id)
    except SQLAlchemyError as exc:
        logger.error(f"Database error fetching job status {job_id}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ไม่สามารถดึงสถานะงานได้",
        ) from exc
    if not job:
        raise HTTPException(status_code=404, detail="ไม่พบงานนำเข้า")
    return serialize_job(job, progress_payload=fetch_progress(job_id))
