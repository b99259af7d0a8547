"""Shared helpers for publishing import progress to Redis."""

from __future__ import annotations

import json
from datetime import timedelta
from typing import Any

from redis.exceptions import RedisError

from assetdesk.utils.redis_client import get_redis

PROGRESS_PREFIX = "jobs:progress:"
PROGRESS_TTL = timedelta(hours=24)


def _key(job_id: str) -> str:
    return f"{PROGRESS_PREFIX}{job_id}"


def percent_complete(processed: int, total: int) -> int:
    """Whole-number percentage, clamped to 0-100."""
    if total <= 0:
        return 100 if processed else 0
    return round(min(processed, total) / total * 100)


def publish_progress(
    job_id: str,
    progress: int,
    message: str | None = None,
    *,
    status: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """Persist progress snapshots so the UI can poll them."""
    payload = {
        "job_id": job_id,
        "progress": max(0, min(int(progress), 100)),
        "message": message,
        "status": status,
        "meta": meta or {},
    }
    try:
        get_redis().set(
            _key(job_id),
            json.dumps(payload, ensure_ascii=False),
            ex=int(PROGRESS_TTL.total_seconds()),
        )
    except RedisError:
        # Redis availability should not break ingestion.
        pass


def fetch_progress(job_id: str) -> dict[str, Any]:
    """Return latest job telemetry used by the import status endpoint."""
    try:
        raw = get_redis().get(_key(job_id))
    except RedisError:
        return {}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}
