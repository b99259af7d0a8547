"""Business logic for CSV bulk imports of products and employees.

An import run preloads reference data, parses the upload, resolves each row
against that data, and submits the prepared rows to the bulk-insert
procedures in fixed-size batches. Failures of one batch are recorded and the
run moves on to the next batch.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.services.progress_tracker import percent_complete
from assetdesk.services.query_cache import EMPLOYEES, PRODUCTS, SERIALS, QueryCache
from assetdesk.services.reference_matching import (
    find_reference_id,
    get_prefix_from_full_category,
    resolve_category,
)
from assetdesk.services.running_numbers import RunningNumbers, fetch_last_ids
from assetdesk.utils.batching import chunked
from assetdesk.utils.csv_validator import (
    EMPLOYEE_REQUIRED_HEADERS,
    PRODUCT_REQUIRED_HEADERS,
    ValidationError,
    optional_text,
    pick,
    safe_float,
    safe_int,
    validate_headers,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 50
DEFAULT_UNIT = "ชิ้น"

PRODUCTS_KIND = "products"
EMPLOYEES_KIND = "employees"

PRODUCT_ID_COLUMNS = ("p_id", "id", "code")
PRODUCT_NAME_COLUMNS = ("name", "product_name")
PRODUCT_QUANTITY_COLUMNS = ("quantity", "qty")

# kind -> (procedure, parameter name, cached views refreshed on success)
BULK_PROCEDURES: dict[str, tuple[str, str, tuple[str, ...]]] = {
    PRODUCTS_KIND: ("import_products_bulk", "products_data", (PRODUCTS, SERIALS)),
    EMPLOYEES_KIND: ("import_employees_bulk", "employees_data", (EMPLOYEES,)),
}

TEMPLATES: dict[str, tuple[list[str], list[list[str]]]] = {
    PRODUCTS_KIND: (
        ["name", "category", "brand", "model", "price", "unit", "quantity", "description", "notes"],
        [
            ["Dell Latitude 3420", "IT", "Dell", "3420", "25000", "เครื่อง", "5", "Core i5 RAM 8GB", "ล็อตปี 67"],
            ["เก้าอี้สำนักงาน", "FR", "IKEA", "Markus", "5900", "ตัว", "2", "สีดำ พนักพิงสูง", "ห้องประชุมเล็ก"],
        ],
    ),
    EMPLOYEES_KIND: (
        ["emp_code", "name", "nickname", "department", "gender", "location", "email", "tel"],
        [
            ["EMP-001", "สมชาย ใจดี", "ชาย", "IT", "ชาย", "ชั้น 2", "somchai@company.com", "081-111-1111"],
            ["EMP-002", "สมหญิง จริงใจ", "หญิง", "HR", "หญิง", "ชั้น 1", "somying@company.com", "089-999-9999"],
        ],
    ),
}

ProgressCallback = Callable[[int, int, int], None]


class CsvParseError(ValueError):
    """The upload could not be read as a delimited file with a header row."""


@dataclass
class ImportResult:
    success_count: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"success_count": self.success_count, "errors": list(self.errors)}


def parse_csv(content: bytes | str) -> list[dict[str, str]]:
    """Decode an upload into raw row mappings keyed by lower-cased header.

    A UTF-8 byte-order mark is tolerated; rows with nothing but blanks are skipped.
    """
    try:
        text = content.decode("utf-8-sig") if isinstance(content, bytes) else content.lstrip("\ufeff")
    except UnicodeDecodeError as e:
        raise CsvParseError(f"File encoding error: {e}") from e

    try:
        reader = csv.DictReader(io.StringIO(text, newline=""))
        if not reader.fieldnames:
            raise CsvParseError("CSV file appears to be empty or invalid")
        reader.fieldnames = [(name or "").strip().lower() for name in reader.fieldnames]

        rows: list[dict[str, str]] = []
        for row in reader:
            cleaned = {
                key: value if isinstance(value, str) else ""
                for key, value in row.items()
                if key
            }
            if not any(value.strip() for value in cleaned.values()):
                continue
            rows.append(cleaned)
        return rows
    except csv.Error as e:
        raise CsvParseError(f"CSV parsing error: {e}") from e


def inspect_upload(content: bytes, kind: str) -> int:
    """Parse an upload before queueing it and return its row count.

    Missing required columns are only logged: such rows are dropped during
    preparation and the job completes with nothing inserted.
    """
    rows = parse_csv(content)
    if rows:
        required = PRODUCT_REQUIRED_HEADERS if kind == PRODUCTS_KIND else EMPLOYEE_REQUIRED_HEADERS
        try:
            validate_headers(list(rows[0].keys()), required)
        except ValidationError as e:
            logger.warning(f"{kind} upload has no usable rows: {e}")
    return len(rows)


def load_category_names(client: HostedDbClient) -> list[str]:
    rows, _ = client.select("categories", "name", order="name.asc")
    return [row["name"] for row in rows if row.get("name")]


def load_reference_table(client: HostedDbClient, table: str) -> list[dict[str, Any]]:
    rows, _ = client.select(table, "id,name", order="name.asc")
    return rows


def collect_prefixes(rows: Sequence[dict[str, str]], categories: Sequence[str]) -> set[str]:
    return {
        get_prefix_from_full_category(resolve_category(row.get("category"), categories))
        for row in rows
    }


def prepare_product_rows(
    rows: Sequence[dict[str, str]],
    categories: Sequence[str],
    running_numbers: RunningNumbers,
) -> list[dict[str, Any]]:
    """Resolve categories, fill in missing ids and coerce fields for the bulk RPC.

    Rows without a name are dropped and counted nowhere.
    """
    prepared: list[dict[str, Any]] = []
    for row in rows:
        name = pick(row, *PRODUCT_NAME_COLUMNS)
        if not name:
            continue

        category = resolve_category(row.get("category"), categories)
        p_id = pick(row, *PRODUCT_ID_COLUMNS)
        if not p_id:
            p_id = running_numbers.next_id(get_prefix_from_full_category(category))

        prepared.append(
            {
                "p_id": p_id,
                "name": name,
                "category": category,
                "brand": pick(row, "brand"),
                "model": pick(row, "model"),
                "price": safe_float(pick(row, "price")),
                "unit": pick(row, "unit") or DEFAULT_UNIT,
                "description": pick(row, "description"),
                "notes": pick(row, "notes"),
                "stock_total": safe_int(pick(row, *PRODUCT_QUANTITY_COLUMNS)),
                "image_url": optional_text(row, "image_url"),
            }
        )
    return prepared


def prepare_employee_rows(
    rows: Sequence[dict[str, str]],
    departments: Sequence[dict[str, Any]],
    locations: Sequence[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Map department/location names to ids; rows lacking emp_code or name are dropped."""
    prepared: list[dict[str, Any]] = []
    for row in rows:
        emp_code = pick(row, "emp_code")
        name = pick(row, "name")
        if not emp_code or not name:
            continue

        location = optional_text(row, "location")
        prepared.append(
            {
                "emp_code": emp_code,
                "name": name,
                "nickname": optional_text(row, "nickname"),
                "gender": optional_text(row, "gender"),
                "email": optional_text(row, "email"),
                "tel": optional_text(row, "tel"),
                "location": location,
                "location_id": find_reference_id(location, locations),
                "department_id": find_reference_id(row.get("department"), departments),
            }
        )
    return prepared


def submit_in_batches(
    client: HostedDbClient,
    procedure: str,
    param_name: str,
    rows: Sequence[dict[str, Any]],
    *,
    chunk_size: int = CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
) -> ImportResult:
    """Send rows one batch at a time and aggregate the per-batch results."""
    result = ImportResult()
    total = len(rows)

    for offset, chunk in chunked(rows, chunk_size):
        try:
            data = client.rpc(procedure, {param_name: chunk})
        except RemoteApiError as e:
            logger.warning(f"{procedure} batch at offset {offset} failed: {e}")
            result.errors.append(f"Batch {offset}: {e.message}")
        else:
            if isinstance(data, dict):
                try:
                    result.success_count += int(data.get("success_count") or 0)
                except (TypeError, ValueError):
                    logger.warning(f"{procedure} batch at offset {offset} returned {data!r}")
                    result.errors.append(
                        f"Batch {offset}: invalid success_count {data.get('success_count')!r}"
                    )
                result.errors.extend(str(err) for err in data.get("errors") or [])
            else:
                logger.warning(f"{procedure} returned unexpected payload: {data!r}")

        processed = offset + len(chunk)
        if on_progress:
            on_progress(percent_complete(processed, total), processed, total)

    return result


def _finish(kind: str, result: ImportResult, cache: QueryCache | None) -> ImportResult:
    if result.success_count > 0 and cache is not None:
        cache.invalidate(*BULK_PROCEDURES[kind][2])
    logger.info(
        f"{kind} import finished: {result.success_count} inserted, "
        f"{len(result.errors)} error(s)"
    )
    return result


def run_product_import(
    client: HostedDbClient,
    content: bytes,
    *,
    cache: QueryCache | None = None,
    chunk_size: int = CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
) -> ImportResult:
    categories = load_category_names(client)
    rows = parse_csv(content)

    running_numbers = fetch_last_ids(client, collect_prefixes(rows, categories))
    prepared = prepare_product_rows(rows, categories, running_numbers)
    logger.info(f"Prepared {len(prepared)} of {len(rows)} product row(s)")

    procedure, param_name, _ = BULK_PROCEDURES[PRODUCTS_KIND]
    result = submit_in_batches(
        client,
        procedure,
        param_name,
        prepared,
        chunk_size=chunk_size,
        on_progress=on_progress,
    )
    return _finish(PRODUCTS_KIND, result, cache)


def run_employee_import(
    client: HostedDbClient,
    content: bytes,
    *,
    cache: QueryCache | None = None,
    chunk_size: int = CHUNK_SIZE,
    on_progress: ProgressCallback | None = None,
) -> ImportResult:
    departments = load_reference_table(client, "departments")
    locations = load_reference_table(client, "locations")
    rows = parse_csv(content)

    prepared = prepare_employee_rows(rows, departments, locations)
    logger.info(f"Prepared {len(prepared)} of {len(rows)} employee row(s)")

    procedure, param_name, _ = BULK_PROCEDURES[EMPLOYEES_KIND]
    result = submit_in_batches(
        client,
        procedure,
        param_name,
        prepared,
        chunk_size=chunk_size,
        on_progress=on_progress,
    )
    return _finish(EMPLOYEES_KIND, result, cache)


IMPORT_RUNNERS = {
    PRODUCTS_KIND: run_product_import,
    EMPLOYEES_KIND: run_employee_import,
}


def build_template(kind: str) -> bytes:
    """BOM-prefixed CSV so spreadsheet tools read the Thai sample rows correctly."""
    if kind not in TEMPLATES:
        raise KeyError(kind)
    header, samples = TEMPLATES[kind]
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(samples)
    return ("\ufeff" + buffer.getvalue()).encode("utf-8")
