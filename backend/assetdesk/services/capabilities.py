"""Detect optional views on the hosted database once per application."""

from __future__ import annotations

import logging
import threading
from typing import Any

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError

logger = logging.getLogger(__name__)

EMPLOYEE_VIEW = "employee_directory"
EMPLOYEE_VIEW_COLUMNS = "*"
EMPLOYEE_TABLE = "employees"
EMPLOYEE_TABLE_COLUMNS = "*,departments(name),locations(name,building)"

# PostgREST / Postgres codes for a relation missing from the schema cache.
MISSING_RELATION_CODES = {"42P01", "PGRST205"}


def is_missing_relation(error: RemoteApiError) -> bool:
    if error.code in MISSING_RELATION_CODES:
        return True
    message = error.message.lower()
    return "does not exist" in message or "could not find the table" in message


class RemoteCapabilities:
    """Lives on ``app.state``; flags stay ``None`` until first probed."""

    def __init__(self) -> None:
        self.employees_view_available: bool | None = None
        self._lock = threading.Lock()

    def mark_employees_view_missing(self) -> None:
        with self._lock:
            if self.employees_view_available is not False:
                logger.warning(
                    f"View {EMPLOYEE_VIEW} is missing; reading {EMPLOYEE_TABLE} directly"
                )
            self.employees_view_available = False

    def list_employees(
        self,
        client: HostedDbClient,
        *,
        filters: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Read employees from the view, or from the base table once the view is known missing."""
        if self.employees_view_available is not False:
            try:
                rows, _ = client.select(
                    EMPLOYEE_VIEW, EMPLOYEE_VIEW_COLUMNS, filters=filters, order="name.asc"
                )
            except RemoteApiError as e:
                if not is_missing_relation(e):
                    raise
                self.mark_employees_view_missing()
            else:
                self.employees_view_available = True
                return rows

        rows, _ = client.select(
            EMPLOYEE_TABLE, EMPLOYEE_TABLE_COLUMNS, filters=filters, order="name.asc"
        )
        return rows
