"""Translate hosted-database failures into HTTP errors."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from assetdesk.clients.hosted_db import RemoteApiError

logger = logging.getLogger(__name__)


def remote_error(exc: RemoteApiError, action: str) -> HTTPException:
    """Procedure refusals become 400 with their message; transport/server failures become 502."""
    if exc.status_code is None and exc.code not in ("timeout", "network"):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{action}ไม่สำเร็จ: {exc.message}",
        )
    if exc.status_code in (401, 403):
        return HTTPException(
            status_code=exc.status_code,
            detail="สิทธิ์การใช้งานไม่เพียงพอ กรุณาเข้าสู่ระบบใหม่",
        )
    if exc.status_code is not None and 400 <= exc.status_code < 500:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{action}ไม่สำเร็จ: {exc.message}",
        )
    logger.error(f"Hosted db failure during '{action}': {exc}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"{action}ไม่สำเร็จ กรุณาลองใหม่",
    )
