"""Best-effort matching of free-text CSV values against reference tables."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

DEFAULT_CATEGORY = "ทั่วไป (GEN)"
FALLBACK_PREFIX = "GEN"

_CODE_PATTERN = re.compile(r"\(([^)]+)\)")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def extract_code(category_name: str) -> str | None:
    """Return the parenthesized code of names like 'Information Technology (IT)'."""
    match = _CODE_PATTERN.search(category_name or "")
    if not match:
        return None
    code = match.group(1).strip()
    return code or None


def resolve_category(value: str | None, categories: Sequence[str]) -> str:
    """Map a CSV category cell to an existing category name.

    Priority: parenthesized code, full name, then substring containment, all
    case-insensitive. Anything unmatched lands on the first known category,
    so a misspelled category never fails the row.
    """
    if not categories:
        return DEFAULT_CATEGORY

    needle = (value or "").strip().lower()
    if not needle:
        return categories[0]

    for name in categories:
        code = extract_code(name)
        if code and code.lower() == needle:
            return name

    for name in categories:
        if name.strip().lower() == needle:
            return name

    for name in categories:
        if needle in name.lower():
            return name

    return categories[0]


def get_prefix_from_full_category(category_name: str | None) -> str:
    """Short uppercase prefix used to group generated product ids."""
    code = extract_code(category_name or "")
    if code:
        return code.upper()
    letters = _NON_ALNUM.sub("", category_name or "")
    if len(letters) >= 2:
        return letters[:2].upper()
    return FALLBACK_PREFIX


def find_reference_id(value: str | None, records: Sequence[dict[str, Any]]) -> str | None:
    """Exact case-insensitive name lookup used for departments and locations."""
    needle = (value or "").strip().lower()
    if not needle:
        return None
    for record in records:
        name = record.get("name")
        if isinstance(name, str) and name.strip().lower() == needle:
            return record.get("id")
    return None
