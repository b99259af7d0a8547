"""Staging of uploaded CSV files for the import worker.

Uploads are written to the local uploads directory and mirrored into Redis so
a worker running on a separate instance can still read them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from redis.exceptions import RedisError

from assetdesk.core.config import get_settings
from assetdesk.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

FILE_STORAGE_PREFIX = "files:upload:"
FILE_STORAGE_TTL = 86400  # seconds
MAX_REDIS_FILE_SIZE = 20 * 1024 * 1024


def _uploads_dir() -> Path:
    path = Path(get_settings().uploads_dir).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _binary_redis():
    return create_redis_client(get_settings().redis_url, decode_responses=False)


def save_upload(content: bytes, job_id: str, original_name: str | None = None) -> Path:
    """Persist uploaded CSV to local disk and return the absolute path."""
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = (_uploads_dir() / f"{job_id}{suffix}").resolve()
    target_path.write_bytes(content)
    return target_path


def store_in_redis(content: bytes, job_id: str) -> bool:
    """Mirror the upload into Redis; returns False when it could not be stored."""
    if len(content) > MAX_REDIS_FILE_SIZE:
        logger.warning(
            f"File too large for Redis storage ({len(content)} bytes), "
            "worker must share the local filesystem"
        )
        return False
    try:
        client = _binary_redis()
        client.set(f"{FILE_STORAGE_PREFIX}{job_id}", content, ex=FILE_STORAGE_TTL)
        client.close()
    except RedisError as e:
        logger.warning(f"Failed to store file in Redis: {e}, will use local filesystem")
        return False
    logger.info(f"Stored file in Redis for job {job_id} ({len(content)} bytes)")
    return True


def load_upload(job_id: str, file_path: str | None) -> bytes:
    """Read a staged upload from disk, falling back to the Redis copy."""
    if file_path and not file_path.startswith("redis:"):
        path = Path(file_path)
        if path.exists():
            return path.read_bytes()
        logger.warning(f"Local file not found: {path}, trying Redis for job {job_id}")

    try:
        client = _binary_redis()
        content = client.get(f"{FILE_STORAGE_PREFIX}{job_id}")
        client.close()
    except RedisError as e:
        raise FileNotFoundError(f"Upload for job {job_id} unavailable: {e}") from e
    if not content:
        raise FileNotFoundError(
            f"Upload for job {job_id} not found locally or in Redis; it may have expired"
        )
    return content


def discard_upload(job_id: str, file_path: str | None) -> None:
    """Cleanup staged copies when imports finish."""
    if file_path and not file_path.startswith("redis:"):
        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete staged file {file_path}: {e}")
    try:
        client = _binary_redis()
        client.delete(f"{FILE_STORAGE_PREFIX}{job_id}")
        client.close()
    except RedisError as e:
        logger.warning(f"Failed to delete file from Redis: {e}")
