"""Borrow/return workflow endpoints and transaction lists."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from assetdesk.api.dependencies.remote import (
    get_hosted_db,
    get_in_flight_returns,
    get_query_cache,
)
from assetdesk.api.errors import remote_error
from assetdesk.api.schemas.transaction import (
    BorrowRequest,
    RejectRequest,
    ReturnRequest,
    ReturnRequestCreate,
    ReturnRequestRead,
    StatusOption,
    TransactionPage,
)
from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.core.transaction_status import (
    TxStatus,
    get_transaction_status_label_th,
    is_returned_like_status,
    normalize_transaction_status,
)
from assetdesk.services import transactions
from assetdesk.services.query_cache import QueryCache
from assetdesk.services.return_flow import (
    RETURN_SUCCESS_MESSAGE,
    InFlightReturns,
    ReturnRequestError,
    request_return,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/statuses", summary="Canonical statuses with Thai labels", response_model=list[StatusOption])
async def list_statuses() -> list[StatusOption]:
    return [
        StatusOption(
            value=s.value,
            label=get_transaction_status_label_th(s.value),
            returned_like=is_returned_like_status(s.value),
        )
        for s in TxStatus
    ]


@router.get("", summary="List transactions", response_model=TransactionPage)
def list_transactions(
    status_filter: str | None = Query(None, alias="status", description="Status or alias"),
    page: int = Query(1, ge=1),
    page_size: int = Query(8, ge=1, le=100),
    client: HostedDbClient = Depends(get_hosted_db),
) -> TransactionPage:
    if status_filter and normalize_transaction_status(status_filter) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"ไม่รู้จักสถานะ '{status_filter}'",
        )
    try:
        result = transactions.list_transactions(client, status_filter, page, page_size)
    except RemoteApiError as exc:
        raise remote_error(exc, "ดึงรายการยืมคืน") from exc
    return TransactionPage(**result, page=page, page_size=page_size)


@router.post("/borrow", summary="Borrow a serialized item", status_code=status.HTTP_201_CREATED)
def borrow(
    payload: BorrowRequest,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict:
    try:
        return transactions.borrow_item(
            client,
            payload.serial_id,
            employee_id=payload.employee_id,
            department_id=payload.department_id,
            note=payload.note,
            cache=cache,
        )
    except RemoteApiError as exc:
        raise remote_error(exc, "ยืมสินค้า") from exc


@router.post("/{transaction_id}/return", summary="Return a borrowed item")
def return_transaction(
    transaction_id: str,
    payload: ReturnRequest,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict:
    try:
        return transactions.return_item(
            client, transaction_id, payload.condition, payload.note, cache=cache
        )
    except RemoteApiError as exc:
        raise remote_error(exc, "รับคืนสินค้า") from exc


@router.post("/{transaction_id}/approve", summary="Approve a pending borrow request")
def approve(
    transaction_id: str,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict:
    try:
        return transactions.approve_request(client, transaction_id, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "อนุมัติคำขอ") from exc


@router.post("/{transaction_id}/reject", summary="Reject a pending borrow request")
def reject(
    transaction_id: str,
    payload: RejectRequest,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
) -> dict:
    try:
        return transactions.reject_request(client, transaction_id, payload.reason, cache=cache)
    except RemoteApiError as exc:
        raise remote_error(exc, "ปฏิเสธคำขอ") from exc


@router.post(
    "/return-requests",
    summary="Employee return request",
    response_model=ReturnRequestRead,
)
def create_return_request(
    payload: ReturnRequestCreate,
    client: HostedDbClient = Depends(get_hosted_db),
    cache: QueryCache = Depends(get_query_cache),
    in_flight: InFlightReturns = Depends(get_in_flight_returns),
) -> ReturnRequestRead:
    try:
        result = request_return(
            client,
            payload.serial_id,
            payload.note,
            client_request_id=payload.client_request_id,
            cache=cache,
            in_flight=in_flight,
        )
    except ReturnRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.info(f"{RETURN_SUCCESS_MESSAGE}: serial {payload.serial_id} ({result.request_id})")
    return ReturnRequestRead(**result.to_dict())
