"""Canonical transaction statuses and the aliases the UI and legacy rows use."""

from __future__ import annotations

from enum import Enum
from typing import Any


class TxStatus(str, Enum):
    """Wire-level status values stored by the transaction procedures."""

    PENDING = "Pending"
    ACTIVE = "Active"
    REJECTED = "Rejected"
    COMPLETED = "Completed"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"


STATUS_VALUES = frozenset(status.value for status in TxStatus)

# Lower-cased alias -> canonical status. Thai labels and legacy English values
# written before the approval workflow existed are accepted.
_ALIASES: dict[str, TxStatus] = {
    "pending": TxStatus.PENDING,
    "pendingapproval": TxStatus.PENDING,
    "pending_approval": TxStatus.PENDING,
    "รออนุมัติ": TxStatus.PENDING,
    "active": TxStatus.ACTIVE,
    "approved": TxStatus.ACTIVE,
    "กำลังยืม": TxStatus.ACTIVE,
    "อนุมัติแล้ว": TxStatus.ACTIVE,
    "rejected": TxStatus.REJECTED,
    "ปฏิเสธ": TxStatus.REJECTED,
    "ถูกปฏิเสธ": TxStatus.REJECTED,
    "completed": TxStatus.COMPLETED,
    "คืนแล้ว": TxStatus.COMPLETED,
    "returned": TxStatus.RETURNED,
    "cancelled": TxStatus.CANCELLED,
    "canceled": TxStatus.CANCELLED,
    "ยกเลิก": TxStatus.CANCELLED,
}

STATUS_LABELS_TH: dict[TxStatus, str] = {
    TxStatus.PENDING: "รออนุมัติ",
    TxStatus.ACTIVE: "กำลังยืม",
    TxStatus.REJECTED: "ปฏิเสธ",
    TxStatus.COMPLETED: "คืนแล้ว",
    TxStatus.RETURNED: "คืนแล้ว",
    TxStatus.CANCELLED: "ยกเลิก",
}

UNKNOWN_STATUS_LABEL_TH = "ไม่ทราบสถานะ"

RETURNED_LIKE = (TxStatus.COMPLETED, TxStatus.RETURNED)


def is_transaction_status(value: Any) -> bool:
    """True only for the exact canonical wire strings."""
    return isinstance(value, str) and value in STATUS_VALUES


def normalize_transaction_status(value: Any) -> TxStatus | None:
    """Map any label to its canonical status, or None when unrecognized.

    Matching is case- and surrounding-whitespace-insensitive. Never raises.
    """
    if not value or not isinstance(value, str):
        return None
    return _ALIASES.get(value.strip().lower())


def is_returned_like_status(value: Any) -> bool:
    """Completed and Returned are both treated as the terminal returned state."""
    return normalize_transaction_status(value) in RETURNED_LIKE


def get_transaction_status_label_th(value: Any) -> str:
    status = normalize_transaction_status(value)
    if status is None:
        raw = value.strip() if isinstance(value, str) else ""
        return raw or UNKNOWN_STATUS_LABEL_TH
    return STATUS_LABELS_TH[status]


def statuses_for_filter(value: Any) -> list[str]:
    """Wire values a list filter has to match for the given status label."""
    status = normalize_transaction_status(value)
    if status is None:
        return []
    if status in RETURNED_LIKE:
        return [s.value for s in RETURNED_LIKE]
    return [status.value]
