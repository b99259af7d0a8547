"""Borrow/return/approve/reject wrappers around the transaction procedures.

Stock arithmetic and status legality are enforced by the procedures; this
module only shapes arguments, surfaces ``success: false`` results as errors
and refreshes the cached views a transaction touches.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from assetdesk.clients.hosted_db import HostedDbClient
from assetdesk.core.transaction_status import statuses_for_filter
from assetdesk.services.query_cache import (
    DASHBOARD,
    PRODUCTS,
    SERIALS,
    TRANSACTIONS,
    QueryCache,
)

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = (
    "*,"
    "employees(name,emp_code,department_id),"
    "departments(name),"
    "product_serials(serial_code,products(name,p_id,image_url,brand,model))"
)

MUTATION_VIEWS = (TRANSACTIONS, SERIALS, PRODUCTS)


def list_transactions(
    client: HostedDbClient,
    status: str | None = None,
    page: int = 1,
    page_size: int = 8,
) -> dict[str, Any]:
    """Newest-first page of transactions; returned-like filters match both terminal values."""
    filters: dict[str, str] = {}
    if status:
        values = statuses_for_filter(status)
        if not values:
            return {"data": [], "total": 0, "total_pages": 0}
        if len(values) == 1:
            filters["status"] = f"eq.{values[0]}"
        else:
            filters["status"] = f"in.({','.join(values)})"

    rows, total = client.select(
        "transactions",
        TRANSACTION_COLUMNS,
        filters=filters,
        order="created_at.desc",
        limit=page_size,
        offset=(page - 1) * page_size,
        count=True,
    )
    total = total or 0
    return {
        "data": rows,
        "total": total,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }


def borrow_item(
    client: HostedDbClient,
    serial_id: str,
    *,
    employee_id: str | None = None,
    department_id: str | None = None,
    note: str | None = None,
    cache: QueryCache | None = None,
) -> dict[str, Any]:
    borrower_id = employee_id or department_id
    if not borrower_id:
        raise ValueError("Missing borrower id")
    borrower_type = "employee" if employee_id else "department"

    result = client.rpc_checked(
        "borrow_item",
        {
            "arg_serial_id": serial_id,
            "arg_borrower_id": borrower_id,
            "arg_borrower_type": borrower_type,
            "arg_note": note or "",
        },
    )
    logger.info(f"Borrowed serial {serial_id} for {borrower_type} {borrower_id}")
    _invalidate(cache, *MUTATION_VIEWS)
    return result


def return_item(
    client: HostedDbClient,
    transaction_id: str,
    condition: str,
    note: str | None = None,
    *,
    cache: QueryCache | None = None,
) -> dict[str, Any]:
    result = client.rpc_checked(
        "return_item",
        {
            "arg_transaction_id": transaction_id,
            "arg_return_condition": condition,
            "arg_note": note or "",
        },
    )
    logger.info(f"Returned transaction {transaction_id} ({condition})")
    _invalidate(cache, *MUTATION_VIEWS, DASHBOARD)
    return result


def approve_request(
    client: HostedDbClient,
    transaction_id: str,
    *,
    cache: QueryCache | None = None,
) -> dict[str, Any]:
    result = client.rpc_checked(
        "approve_borrow_request", {"arg_transaction_id": transaction_id}
    )
    logger.info(f"Approved borrow request {transaction_id}")
    _invalidate(cache, *MUTATION_VIEWS)
    return result


def reject_request(
    client: HostedDbClient,
    transaction_id: str,
    reason: str,
    *,
    cache: QueryCache | None = None,
) -> dict[str, Any]:
    result = client.rpc_checked(
        "reject_borrow_request",
        {"arg_transaction_id": transaction_id, "arg_reason": reason},
    )
    logger.info(f"Rejected borrow request {transaction_id}")
    _invalidate(cache, *MUTATION_VIEWS)
    return result


def _invalidate(cache: QueryCache | None, *namespaces: str) -> None:
    if cache is not None:
        cache.invalidate(*namespaces)
