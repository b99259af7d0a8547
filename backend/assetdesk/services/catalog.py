"""Product, serial and dashboard reads plus the safe-delete/update procedures."""

from __future__ import annotations

import logging
from typing import Any

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.services.query_cache import (
    DASHBOARD,
    PRODUCTS,
    SERIALS,
    QueryCache,
    optimistic_update,
)

logger = logging.getLogger(__name__)

SERIAL_COLUMNS = (
    "*,"
    "products(name,p_id,category,brand,model,image_url),"
    "locations(id,name,building)"
)

EMPTY_DASHBOARD_SUMMARY: dict[str, Any] = {
    "total_value": 0,
    "total_items": 0,
    "available_count": 0,
    "borrowed_count": 0,
    "repair_count": 0,
    "pending_count": 0,
}


def _escape_like(term: str) -> str:
    # PostgREST or=() filters use commas and parentheses as separators.
    return term.replace(",", " ").replace("(", " ").replace(")", " ").strip()


def list_products(
    client: HostedDbClient,
    search: str | None = None,
    *,
    cache: QueryCache | None = None,
) -> list[dict[str, Any]]:
    def load() -> list[dict[str, Any]]:
        filters: dict[str, str] = {}
        term = _escape_like(search or "")
        if term:
            filters["or"] = (
                f"(name.ilike.*{term}*,p_id.ilike.*{term}*,"
                f"brand.ilike.*{term}*,model.ilike.*{term}*)"
            )
        rows, _ = client.select("products", "*", filters=filters, order="created_at.desc")
        return rows

    if cache is None:
        return load()
    return cache.get_or_load(cache.key(PRODUCTS, "list", search or ""), load)


def list_serials(
    client: HostedDbClient,
    search: str | None = None,
    *,
    cache: QueryCache | None = None,
) -> list[dict[str, Any]]:
    """Serials with their product; a search matches serial code or product fields."""

    def load() -> list[dict[str, Any]]:
        filters: dict[str, str] = {}
        term = _escape_like(search or "")
        if term:
            # Cross-table search is done as two queries; an or() spanning an
            # embedded relation is rejected by the gateway.
            products, _ = client.select(
                "products",
                "id",
                filters={
                    "or": (
                        f"(name.ilike.*{term}*,p_id.ilike.*{term}*,"
                        f"brand.ilike.*{term}*,model.ilike.*{term}*)"
                    )
                },
            )
            product_ids = [row["id"] for row in products if row.get("id")]
            if product_ids:
                filters["or"] = (
                    f"(serial_code.ilike.*{term}*,"
                    f"product_id.in.({','.join(str(pid) for pid in product_ids)}))"
                )
            else:
                filters["serial_code"] = f"ilike.*{term}*"
        rows, _ = client.select(
            "product_serials", SERIAL_COLUMNS, filters=filters, order="serial_code.asc"
        )
        return rows

    if cache is None:
        return load()
    return cache.get_or_load(cache.key(SERIALS, "list", search or ""), load)


def update_serial(
    client: HostedDbClient,
    serial_id: str,
    changes: dict[str, Any],
    *,
    cache: QueryCache | None = None,
) -> Any:
    """Apply a serial status change, showing it in the cached list before the RPC returns."""
    params = {
        "arg_serial_id": serial_id,
        "arg_status": changes.get("status") or "",
        "arg_sticker_status": changes.get("sticker_status") or "",
        "arg_sticker_date": changes.get("sticker_date") or None,
        "arg_sticker_image_url": changes.get("sticker_image_url") or None,
        "arg_image_url": changes.get("image_url") or None,
        "arg_notes": changes.get("notes") or None,
        "arg_location_id": changes.get("location_id") or None,
    }
    if cache is None:
        return client.rpc("update_serial_status", params)

    visible = {key: value for key, value in changes.items() if value is not None}

    def apply(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {**row, **visible} if str(row.get("id")) == str(serial_id) else row
            for row in rows
        ]

    with optimistic_update(cache, cache.key(SERIALS, "list", ""), apply):
        result = client.rpc("update_serial_status", params)

    cache.invalidate(SERIALS, PRODUCTS, DASHBOARD)
    return result


def delete_product(
    client: HostedDbClient, product_id: str, *, cache: QueryCache | None = None
) -> dict[str, Any]:
    result = client.rpc_checked("delete_product_safe", {"arg_product_id": product_id})
    logger.info(f"Deleted product {product_id}")
    if cache is not None:
        cache.invalidate(PRODUCTS, SERIALS, DASHBOARD)
    return result


def delete_serial(
    client: HostedDbClient, serial_id: str, *, cache: QueryCache | None = None
) -> dict[str, Any]:
    result = client.rpc_checked("delete_serial_safe", {"arg_serial_id": serial_id})
    logger.info(f"Deleted serial {serial_id}")
    if cache is not None:
        cache.invalidate(SERIALS, PRODUCTS, DASHBOARD)
    return result


def get_dashboard_summary(
    client: HostedDbClient, *, cache: QueryCache | None = None
) -> dict[str, Any]:
    """Summary counters; a failing procedure yields zeroed counters instead of an error."""

    def load() -> dict[str, Any]:
        data = client.rpc("get_dashboard_summary")
        if isinstance(data, list):
            data = data[0] if data else {}
        return {**EMPTY_DASHBOARD_SUMMARY, **(data or {})}

    try:
        if cache is None:
            return load()
        return cache.get_or_load(cache.key(DASHBOARD, "summary"), load)
    except RemoteApiError as e:
        logger.error(f"Error fetching dashboard summary: {e}")
        return dict(EMPTY_DASHBOARD_SUMMARY)
