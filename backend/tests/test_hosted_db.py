import json

import httpx
import pytest

from assetdesk.clients.hosted_db import HostedDbClient, RemoteApiError, redact_headers


def make_client(handler, token=None) -> HostedDbClient:
    return HostedDbClient(
        "http://hosted.test",
        "anon-key",
        access_token=token,
        transport=httpx.MockTransport(handler),
    )


def test_select_sends_filters_and_reads_total():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(
            200,
            json=[{"id": 1}, {"id": 2}],
            headers={"Content-Range": "0-1/42"},
        )

    with make_client(handler, token="user-jwt") as client:
        rows, total = client.select(
            "transactions",
            "*",
            filters={"status": "in.(Completed,Returned)"},
            order="created_at.desc",
            limit=8,
            offset=8,
            count=True,
        )

    assert rows == [{"id": 1}, {"id": 2}]
    assert total == 42
    assert seen["url"].path == "/rest/v1/transactions"
    assert seen["url"].params["status"] == "in.(Completed,Returned)"
    assert seen["url"].params["offset"] == "8"
    assert seen["headers"]["Prefer"] == "count=exact"
    assert seen["headers"]["apikey"] == "anon-key"
    assert seen["headers"]["Authorization"] == "Bearer user-jwt"


def test_rpc_posts_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/rpc/import_products_bulk"
        body = json.loads(request.content)
        return httpx.Response(200, json={"success_count": len(body["products_data"]), "errors": []})

    with make_client(handler) as client:
        result = client.rpc("import_products_bulk", {"products_data": [{"name": "ก"}, {"name": "ข"}]})

    assert result == {"success_count": 2, "errors": []}


def test_error_response_becomes_remote_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "relation does not exist", "code": "42P01"})

    with make_client(handler) as client, pytest.raises(RemoteApiError) as info:
        client.select("employee_directory")

    assert info.value.code == "42P01"
    assert info.value.status_code == 404
    assert "does not exist" in str(info.value)


def test_non_json_success_body_becomes_remote_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with make_client(handler) as client:
        with pytest.raises(RemoteApiError) as rpc_info:
            client.rpc("import_products_bulk", {"products_data": []})
        with pytest.raises(RemoteApiError) as select_info:
            client.select("products")

    assert rpc_info.value.code == "invalid_response"
    assert rpc_info.value.status_code == 200
    assert select_info.value.code == "invalid_response"


def test_network_failure_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with make_client(handler) as client, pytest.raises(RemoteApiError) as info:
        client.rpc("get_dashboard_summary")

    assert info.value.code == "network"
    assert info.value.status_code is None


def test_rpc_checked_raises_on_success_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "ไม่สามารถลบได้ มีการยืมอยู่"})

    with make_client(handler) as client, pytest.raises(RemoteApiError, match="ไม่สามารถลบได้"):
        client.rpc_checked("delete_product_safe", {"arg_product_id": "p1"})


def test_invoke_function_forwards_headers():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/functions/v1/return-transaction"
        assert request.headers["Idempotency-Key"] == "req-1"
        return httpx.Response(200, json={"success": True})

    with make_client(handler) as client:
        assert client.invoke_function(
            "return-transaction", {"serialId": "s1"}, headers={"Idempotency-Key": "req-1"}
        ) == {"success": True}


def test_redact_headers_masks_credentials():
    redacted = redact_headers({"apikey": "k", "Authorization": "Bearer t", "Accept": "json"})
    assert redacted == {"apikey": "[redacted]", "Authorization": "[redacted]", "Accept": "json"}
