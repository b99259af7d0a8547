"""Validate CSV headers and coerce individual field values."""

from __future__ import annotations

import math
from typing import Any


class ValidationError(ValueError):
    """Custom exception for CSV validation errors."""

    pass


# Each required field lists the header aliases that may carry it.
PRODUCT_REQUIRED_HEADERS = {"name": ("name", "product_name")}
EMPLOYEE_REQUIRED_HEADERS = {"emp_code": ("emp_code",), "name": ("name",)}


def validate_headers(
    headers: list[str] | None, required: dict[str, tuple[str, ...]]
) -> None:
    """Ensure CSV contains the required columns before processing."""
    if not headers:
        raise ValidationError("CSV requires a header row")
    normalized = {header.strip().lower() for header in headers if header}
    missing = [
        field
        for field, aliases in required.items()
        if not any(alias in normalized for alias in aliases)
    ]
    if missing:
        raise ValidationError(f"Missing required column(s): {', '.join(missing)}")


def pick(row: dict[str, Any], *keys: str) -> str:
    """Return the first non-empty trimmed value among the given column aliases."""
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def optional_text(row: dict[str, Any], *keys: str) -> str | None:
    return pick(row, *keys) or None


def safe_float(value: str | None) -> float:
    """Parse a number, accepting thousands separators; 0 on anything unparsable."""
    if not value:
        return 0.0
    try:
        number = float(value.replace(",", "").strip())
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def safe_int(value: str | None) -> int:
    """Parse the leading integer part; 0 on anything unparsable."""
    if not value:
        return 0
    cleaned = value.replace(",", "").strip()
    try:
        return int(cleaned)
    except ValueError:
        pass
    try:
        return int(float(cleaned))
    except (ValueError, OverflowError):
        return 0
