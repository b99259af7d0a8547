"""Read endpoints for products, serials, employees and the dashboard, plus safe deletes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from assetdesk.api.dependencies.remote import get_capabilities, get_hosted_db, get_query_cache
from assetdesk.api.errors import remote_error
from assetdesk.api.schemas.serial import SerialUpdate
from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.services import catalog
from assetdesk.services.capabilities import RemoteCapabilities
from assetdesk.services.query_cache import QueryCache

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/products", summary="List products", tags=["products"])
def list_products(
    search: str | None = Query(None, description="Name, code, brand or model"),
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> list[dict[str, Any]]:
    try:
        return catalog.list_products(client, search, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "ดึงข้อมูลสินค้า") from exc


@router.delete("/products/{product_id}", summary="Delete a product", tags=["products"])
def delete_product(
    product_id: str,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict[str, Any]:
    try:
        return catalog.delete_product(client, product_id, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "ลบสินค้า") from exc


@router.get("/serials", summary="List serialized items", tags=["serials"])
def list_serials(
    search: str | None = Query(None),
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> list[dict[str, Any]]:
    try:
        return catalog.list_serials(client, search, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "ดึงข้อมูล Serial") from exc


@router.patch("/serials/{serial_id}", summary="Update serial status", tags=["serials"])
def update_serial(
    serial_id: str,
    payload: SerialUpdate,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> Any:
    try:
        return catalog.update_serial(
            client, serial_id, payload.model_dump(exclude_unset=True), cache=cache
        )
    except RemoteApiError as exc:
        raise remote_error(exc, "แก้ไข Serial") from exc


@router.delete("/serials/{serial_id}", summary="Delete a serial", tags=["serials"])
def delete_serial(
    serial_id: str,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict[str, Any]:
    try:
        return catalog.delete_serial(client, serial_id, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "ลบ Serial") from exc


@router.get("/employees", summary="List employees", tags=["employees"])
def list_employees(
    search: str | None = Query(None, description="Name or employee code"),
    client: HostedDbClient = Depends(get_hosted_db),
    capabilities: RemoteCapabilities = Depends(get_capabilities),
) -> list[dict[str, Any]]:
    filters: dict[str, str] = {}
    term = catalog._escape_like(search or "")
    if term:
        filters["or"] = f"(name.ilike.*{term}*,emp_code.ilike.*{term}*)"
    try:
        return capabilities.list_employees(client, filters=filters)
    except RemoteApiError as exc:
        raise remote_error(exc, "ดึงข้อมูลพนักงาน") from exc


@router.get("/dashboard/summary", summary="Dashboard counters", tags=["dashboard"])
def dashboard_summary(
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict[str, Any]:
    return catalog.get_dashboard_summary(client, cache=cache)
