"""Per-prefix running numbers for auto-generated product ids.

Counters are seeded once per import run from the highest existing id and then
advanced in memory. Two imports running at the same time read the same seed
and can hand out the same id; the bulk-insert procedure is the only place
that can reject the duplicate (it reports it as a per-row error).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from assetdesk.clients.hosted_db import HostedDbClient

logger = logging.getLogger(__name__)

ID_WIDTH = 4


def extract_trailing_number(identifier: str | None) -> int:
    """Numeric segment after the last '-', or 0 if missing or not a number."""
    if not identifier:
        return 0
    _, _, tail = identifier.rpartition("-")
    digits = ""
    for char in tail.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else 0


def format_identifier(prefix: str, number: int) -> str:
    return f"{prefix}-{number:0{ID_WIDTH}d}"


class RunningNumbers:
    """In-memory prefix -> last used number mapping for a single import run."""

    def __init__(self, seeds: dict[str, int] | None = None) -> None:
        self._last: dict[str, int] = dict(seeds or {})

    def last(self, prefix: str) -> int:
        return self._last.get(prefix, 0)

    def next_id(self, prefix: str) -> str:
        number = self._last.get(prefix, 0) + 1
        self._last[prefix] = number
        return format_identifier(prefix, number)

    def as_dict(self) -> dict[str, int]:
        return dict(self._last)


def fetch_last_ids(
    client: HostedDbClient,
    prefixes: Iterable[str],
    *,
    table: str = "products",
    column: str = "p_id",
) -> RunningNumbers:
    """Seed counters from the greatest existing id per prefix (one query each)."""
    seeds: dict[str, int] = {}
    for prefix in sorted(set(prefixes)):
        row = client.first(
            table,
            column,
            filters={column: f"ilike.{prefix}-*"},
            order=f"{column}.desc",
        )
        seeds[prefix] = extract_trailing_number(row.get(column) if row else None)
        logger.debug(f"Seeded running number for {prefix}: {seeds[prefix]}")
    return RunningNumbers(seeds)
