"""Employee-initiated returns through the return-transaction edge function."""

from __future__ import annotations

import logging
import re
import threading
import uuid
from dataclasses import asdict, dataclass
from typing import Any

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.core.transaction_status import TxStatus
from assetdesk.services.query_cache import PRODUCTS, SERIALS, TRANSACTIONS, QueryCache

logger = logging.getLogger(__name__)

RETURN_FUNCTION = "return-transaction"
RETURN_NOTE_MAX_LENGTH = 500

RETURN_SUCCESS_MESSAGE = "คืนสินค้าเรียบร้อย"
RETURN_ACTIVE_NOT_FOUND_MESSAGE = "ไม่พบรายการยืมที่กำลังใช้งาน"
RETURN_GENERIC_ERROR_MESSAGE = "คืนสินค้าไม่สำเร็จ กรุณาลองใหม่"
RETURN_INVALID_STATUS_MESSAGE = "คืนสินค้าไม่สำเร็จ: สถานะรายการไม่ถูกต้อง"
INVALID_SERIAL_MESSAGE = "ข้อมูลสินค้าไม่ถูกต้อง"
SESSION_EXPIRED_MESSAGE = "สิทธิ์การใช้งานหมดอายุ กรุณาเข้าสู่ระบบใหม่"
NETWORK_ERROR_MESSAGE = "ไม่สามารถเชื่อมต่อเซิร์ฟเวอร์ได้ กรุณาลองใหม่"

_THAI = re.compile("[\u0e00-\u0e7f]")
_MOJIBAKE = re.compile(r"(\?{3,}|\ufffd|Ã.|à¸|à¹|àº|à»)")

class InFlightReturns:
    """Serials whose return request is currently being sent.

    Lives on ``app.state`` and so only covers one API process; across
    processes the Idempotency-Key lets the edge function drop duplicates.
    """

    def __init__(self) -> None:
        self._serials: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, serial_id: str) -> bool:
        """Mark a serial as in flight; False when it already was."""
        with self._lock:
            if serial_id in self._serials:
                return False
            self._serials.add(serial_id)
            return True

    def release(self, serial_id: str) -> None:
        with self._lock:
            self._serials.discard(serial_id)

    def __contains__(self, serial_id: object) -> bool:
        with self._lock:
            return serial_id in self._serials


class ReturnRequestError(Exception):
    """Carries a message that is safe to show to the employee."""


@dataclass
class ReturnRequestResult:
    id: str
    status: str
    request_id: str
    replayed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _is_unreadable(message: str) -> bool:
    stripped = message.strip()
    return not stripped or bool(_MOJIBAKE.search(stripped))


def _map_known_message(message: str, code: str | None) -> str:
    normalized = message.strip().lower()
    normalized_code = (code or "").lower()

    if normalized_code == "active_transaction_not_found" or any(
        marker in normalized
        for marker in ("ไม่พบรายการยืม", "active_transaction_not_found", "not found")
    ):
        return RETURN_ACTIVE_NOT_FOUND_MESSAGE

    if (
        normalized_code == "invalid_transaction_status"
        or "transactions_status_check" in normalized
        or "violates check constraint" in normalized
    ):
        return RETURN_INVALID_STATUS_MESSAGE

    if normalized_code == "invalid_serial_id" or "invalid_serial" in normalized:
        return INVALID_SERIAL_MESSAGE

    if normalized_code == "unauthorized" or "unauthorized" in normalized or "401" in normalized:
        return SESSION_EXPIRED_MESSAGE

    if "failed to fetch" in normalized or "network" in normalized:
        return NETWORK_ERROR_MESSAGE

    if _THAI.search(message) and not _is_unreadable(message):
        return message.strip()

    return RETURN_GENERIC_ERROR_MESSAGE


def to_friendly_return_error_message(error: Any) -> str:
    """Turn a remote error or failure payload into a short Thai message."""
    code: str | None = None
    if isinstance(error, RemoteApiError):
        message, code = error.message, error.code
    elif isinstance(error, dict):
        message = error.get("message") if isinstance(error.get("message"), str) else ""
        code = error.get("code") if isinstance(error.get("code"), str) else None
    elif isinstance(error, str):
        message = error
    elif isinstance(error, Exception):
        message = str(error)
    else:
        message = ""

    if _is_unreadable(message):
        return _map_known_message("", code)
    return _map_known_message(message, code)


def request_return(
    client: HostedDbClient,
    serial_id: str,
    note: str = "",
    *,
    client_request_id: str | None = None,
    cache: QueryCache | None = None,
    in_flight: InFlightReturns | None = None,
) -> ReturnRequestResult:
    """Ask the edge function to close the active borrow of a serial.

    A second request for a serial whose return is still in flight in
    ``in_flight`` is answered locally as a replay instead of reaching the remote.
    """
    in_flight = in_flight if in_flight is not None else InFlightReturns()
    serial_id = (serial_id or "").strip()
    request_id = client_request_id or str(uuid.uuid4())
    if not serial_id:
        raise ReturnRequestError(INVALID_SERIAL_MESSAGE)

    if not in_flight.claim(serial_id):
        logger.info(f"Return for serial {serial_id} already in flight; replaying")
        return ReturnRequestResult(
            id=serial_id,
            status=TxStatus.COMPLETED.value,
            request_id=request_id,
            replayed=True,
        )

    return_note = (note or "").strip()[:RETURN_NOTE_MAX_LENGTH]
    body: dict[str, Any] = {"serialId": serial_id}
    if return_note:
        body["note"] = return_note

    try:
        try:
            data = client.invoke_function(
                RETURN_FUNCTION, body, headers={"Idempotency-Key": request_id}
            )
        except RemoteApiError as e:
            logger.warning(f"Return request for serial {serial_id} failed: {e}")
            raise ReturnRequestError(to_friendly_return_error_message(e)) from e

        payload = data if isinstance(data, dict) else {}
        if payload.get("success") is False:
            raise ReturnRequestError(to_friendly_return_error_message(payload))

        transaction = payload.get("transaction") or {}
        result = ReturnRequestResult(
            id=transaction.get("id") or serial_id,
            status=transaction.get("status") or TxStatus.COMPLETED.value,
            request_id=request_id,
        )
    finally:
        in_flight.release(serial_id)

    if cache is not None:
        cache.invalidate(TRANSACTIONS, SERIALS, PRODUCTS)
    return result
