"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.core.config import get_settings
from assetdesk.db.session import engine
from assetdesk.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "assetdesk-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
def ready() -> dict[str, Any]:
    """Check the job database, Redis and the hosted database gateway.

    Redis and the gateway are reported but do not fail readiness: reads fall
    back to uncached queries, and gateway failures surface on the requests
    and import jobs that hit them.
    """
    checks: dict[str, Any] = {"status": "ok", "service": SERVICE_NAME, "checks": {}}
    settings = get_settings()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        checks["checks"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["checks"]["database"] = {"status": "unhealthy", "message": str(e)}
        checks["status"] = "unhealthy"
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=checks)

    try:
        redis_client = create_redis_client(settings.redis_url, socket_connect_timeout=2)
        redis_client.ping()
        redis_client.close()
        checks["checks"]["redis"] = {"status": "healthy"}
    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        checks["checks"]["redis"] = {"status": "unhealthy", "message": str(e)}

    if not settings.hosted_db_key:
        checks["checks"]["hosted_db"] = {"status": "unconfigured"}
        return checks
    try:
        with HostedDbClient.from_settings(settings) as client:
            client.select("products", "id", limit=1)
        checks["checks"]["hosted_db"] = {"status": "healthy"}
    except RemoteApiError as e:
        logger.warning(f"Hosted db health check failed: {e}")
        checks["checks"]["hosted_db"] = {"status": "unhealthy", "message": e.message}

    return checks
