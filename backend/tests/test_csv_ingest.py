import httpx
import pytest

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError
from assetdesk.services import csv_ingest
from assetdesk.services.csv_ingest import (
    CsvParseError,
    build_template,
    inspect_upload,
    parse_csv,
    run_employee_import,
    run_product_import,
    submit_in_batches,
)
from assetdesk.services.reference_matching import DEFAULT_CATEGORY

CATEGORY_ROWS = [{"name": "Information Technology (IT)"}, {"name": "Human Resources (HR)"}]


def _bulk_ok(params):
    return {"success_count": len(params["products_data"]), "errors": []}


def test_parse_csv_handles_bom_case_and_blank_rows():
    content = "\ufeffName,Category,Price\nLaptop,IT,100\n , ,\nMouse,IT,\n".encode("utf-8")
    rows = parse_csv(content)
    assert rows == [
        {"name": "Laptop", "category": "IT", "price": "100"},
        {"name": "Mouse", "category": "IT", "price": ""},
    ]


def test_parse_csv_rejects_undecodable_or_empty():
    with pytest.raises(CsvParseError):
        parse_csv(b"\xff\xfe\x00garbage")
    with pytest.raises(CsvParseError):
        parse_csv(b"")


def test_inspect_upload_counts_rows_without_rejecting_missing_columns():
    assert inspect_upload(b"name,price\nA,1\nB,2\n", "products") == 2
    assert inspect_upload(b"emp_code,name\n", "employees") == 0
    assert inspect_upload(b"name,email\nA,a@x\n", "employees") == 1
    with pytest.raises(CsvParseError):
        inspect_upload(b"\xff\xfe\x00", "products")


def test_upload_without_required_column_completes_empty(hosted_db):
    hosted_db.tables = {"departments": [], "locations": []}

    result = run_employee_import(hosted_db, b"name,email\nA,a@x\nB,b@x\n")

    assert result.to_dict() == {"success_count": 0, "errors": []}
    assert hosted_db.rpc_calls == []


def test_product_import_generates_ids_after_existing_max(hosted_db):
    hosted_db.tables = {"categories": CATEGORY_ROWS}
    hosted_db.last_ids = {"IT": "IT-0007"}
    hosted_db.rpc_results = {"import_products_bulk": _bulk_ok}
    content = (
        "name,category,price,quantity\n"
        "Laptop,IT,\"25,000\",3\n"
        "Monitor,IT,4500,\n"
        "Desk,Furniture,,1\n"
    ).encode("utf-8")

    result = run_product_import(hosted_db, content)

    assert result.success_count == 3
    assert result.errors == []
    (name, params), = hosted_db.rpc_calls
    assert name == "import_products_bulk"
    rows = params["products_data"]
    # Unknown category lands on the first category, so all three share the IT counter.
    assert [row["p_id"] for row in rows] == ["IT-0008", "IT-0009", "IT-0010"]
    assert rows[0]["price"] == 25000.0
    assert rows[0]["stock_total"] == 3
    assert rows[1]["stock_total"] == 0
    assert rows[2]["category"] == "Information Technology (IT)"
    assert all(row["unit"] == "ชิ้น" for row in rows)


def test_explicit_ids_are_kept_and_nameless_rows_dropped(hosted_db):
    hosted_db.tables = {"categories": CATEGORY_ROWS}
    hosted_db.rpc_results = {"import_products_bulk": _bulk_ok}
    content = b"p_id,name,category\nHR-0100,Chair,HR\nHR-0101,,HR\n,Table,HR\n"

    result = run_product_import(hosted_db, content)

    rows = hosted_db.rpc_calls[0][1]["products_data"]
    assert [row["p_id"] for row in rows] == ["HR-0100", "HR-0001"]
    assert result.success_count == 2


def test_no_categories_uses_default_category(hosted_db):
    hosted_db.rpc_results = {"import_products_bulk": _bulk_ok}

    run_product_import(hosted_db, b"name\nThing\n")

    row = hosted_db.rpc_calls[0][1]["products_data"][0]
    assert row["category"] == DEFAULT_CATEGORY
    assert row["p_id"] == "GEN-0001"


def test_batches_aggregate_counts_and_errors(hosted_db):
    responses = iter(
        [
            {"success_count": 3, "errors": ["Row 2: duplicate p_id"]},
            {"success_count": 3, "errors": ["Row 5: duplicate p_id"]},
        ]
    )
    hosted_db.rpc_results = {"bulk": lambda params: next(responses)}
    progress = []

    result = submit_in_batches(
        hosted_db,
        "bulk",
        "rows",
        [{"n": i} for i in range(8)],
        chunk_size=4,
        on_progress=lambda percent, processed, total: progress.append((percent, processed)),
    )

    assert result.success_count == 6
    assert result.errors == ["Row 2: duplicate p_id", "Row 5: duplicate p_id"]
    assert progress == [(50, 4), (100, 8)]


def test_failed_batch_is_recorded_and_run_continues(hosted_db):
    calls = iter([RemoteApiError("timeout talking to db"), {"success_count": 2, "errors": []}])

    def answer(params):
        outcome = next(calls)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    hosted_db.rpc_results = {"bulk": answer}

    result = submit_in_batches(hosted_db, "bulk", "rows", [1, 2, 3, 4], chunk_size=2)

    assert result.success_count == 2
    assert result.errors == ["Batch 0: timeout talking to db"]
    assert len(hosted_db.rpc_calls) == 2


def test_non_json_batch_response_is_recorded_and_run_continues():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        if len(sent) == 1:
            return httpx.Response(200, text="<html>gateway</html>")
        return httpx.Response(200, json={"success_count": 2})

    client = HostedDbClient(
        "http://hosted.test", "anon-key", transport=httpx.MockTransport(handler)
    )
    with client:
        result = submit_in_batches(client, "bulk", "rows", [1, 2, 3, 4], chunk_size=2)

    assert len(sent) == 2
    assert result.success_count == 2
    assert result.errors == ["Batch 0: Invalid response from hosted database"]


def test_unparsable_success_count_is_recorded(hosted_db):
    hosted_db.rpc_results = {"bulk": {"success_count": "n/a", "errors": ["Row 1: bad"]}}

    result = submit_in_batches(hosted_db, "bulk", "rows", [1, 2])

    assert result.success_count == 0
    assert result.errors == ["Batch 0: invalid success_count 'n/a'", "Row 1: bad"]


def test_zero_prepared_rows_submits_nothing(hosted_db, cache, fake_redis):
    hosted_db.tables = {"categories": CATEGORY_ROWS}
    fake_redis.set(cache.key("products", "list", ""), "[]")

    result = run_product_import(hosted_db, b"name,category\n,IT\n", cache=cache)

    assert result.to_dict() == {"success_count": 0, "errors": []}
    assert hosted_db.rpc_calls == []
    # Nothing was inserted, so cached lists stay.
    assert cache.key("products", "list", "") in fake_redis.store


def test_successful_import_invalidates_cached_lists(hosted_db, cache, fake_redis):
    hosted_db.tables = {"categories": CATEGORY_ROWS}
    hosted_db.rpc_results = {"import_products_bulk": _bulk_ok}
    fake_redis.set(cache.key("products", "list", ""), "[]")
    fake_redis.set(cache.key("serials", "list", "x"), "[]")
    fake_redis.set(cache.key("employees", "list"), "[]")

    run_product_import(hosted_db, b"name\nLaptop\n", cache=cache)

    assert list(fake_redis.store) == [cache.key("employees", "list")]


def test_employee_import_maps_department_and_location(hosted_db):
    hosted_db.tables = {
        "departments": [{"id": "dep-it", "name": "IT"}],
        "locations": [{"id": "loc-2", "name": "ชั้น 2"}],
    }
    hosted_db.rpc_results = {
        "import_employees_bulk": lambda params: {
            "success_count": len(params["employees_data"]),
            "errors": [],
        }
    }
    content = (
        "emp_code,name,department,location,email\n"
        "EMP-001,สมชาย,it,ชั้น 2,somchai@company.com\n"
        "EMP-002,สมหญิง,Sales,,\n"
        ",No Code,IT,,\n"
    ).encode("utf-8")

    result = run_employee_import(hosted_db, content)

    rows = hosted_db.rpc_calls[0][1]["employees_data"]
    assert result.success_count == 2
    assert rows[0]["department_id"] == "dep-it"
    assert rows[0]["location_id"] == "loc-2"
    assert rows[1]["department_id"] is None
    assert rows[1]["email"] is None


def test_templates_are_bom_prefixed_csv():
    data = build_template("products")
    assert data.startswith(b"\xef\xbb\xbf")
    header = data.decode("utf-8-sig").splitlines()[0]
    assert header.startswith("name,category")
    assert len(parse_csv(build_template("employees"))) == 2
    with pytest.raises(KeyError):
        build_template("vehicles")


def test_import_runners_cover_both_kinds():
    assert set(csv_ingest.IMPORT_RUNNERS) == {"products", "employees"}
