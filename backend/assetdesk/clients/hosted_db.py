"""Thin HTTP client for the hosted database REST gateway (tables, RPC, edge functions)."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from assetdesk.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

REDACTED_HEADERS = ("authorization", "apikey", "api-key")


class RemoteApiError(Exception):
    """Raised when the hosted database rejects or fails a request."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


def redact_headers(headers: dict[str, str] | httpx.Headers) -> dict[str, str]:
    """Copy headers with credentials masked for debug logging."""
    result: dict[str, str] = {}
    for key, value in headers.items():
        if any(marker in key.lower() for marker in REDACTED_HEADERS):
            result[key] = "[redacted]"
        else:
            result[key] = value
    return result


def _error_from_response(response: httpx.Response) -> RemoteApiError:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = (
            payload.get("message")
            or payload.get("error")
            or payload.get("msg")
            or f"HTTP {response.status_code}"
        )
        code = payload.get("code")
    else:
        message = response.text[:200] or f"HTTP {response.status_code}"
        code = None
    return RemoteApiError(str(message), code=code, status_code=response.status_code)


def _decode_json(response: httpx.Response) -> Any:
    """Decode a successful response body; a non-JSON body (e.g. a proxy error page) is a remote error."""
    try:
        return response.json()
    except ValueError as e:
        logger.warning(
            f"Hosted db returned a non-JSON body for {response.request.url.path}: "
            f"{response.text[:120]!r}"
        )
        raise RemoteApiError(
            "Invalid response from hosted database",
            code="invalid_response",
            status_code=response.status_code,
        ) from e


class HostedDbClient:
    """Synchronous client; one instance per request or per worker task."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 15.0,
        access_token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "User-Agent": "Asset-Desk/1.0",
        }
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        access_token: str | None = None,
    ) -> "HostedDbClient":
        settings = settings or get_settings()
        return cls(
            settings.hosted_db_url,
            settings.hosted_db_key,
            timeout=settings.hosted_db_timeout,
            access_token=access_token,
        )

    def __enter__(self) -> "HostedDbClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"[hosted-db] {method} {path} params={params} "
                f"headers={redact_headers({**self._client.headers, **(headers or {})})}"
            )
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                content=json.dumps(json_body) if json_body is not None else None,
                headers={"Content-Type": "application/json", **(headers or {})},
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Hosted db timeout on {method} {path}: {e}")
            raise RemoteApiError("Request timed out", code="timeout") from e
        except httpx.RequestError as e:
            logger.error(f"Hosted db request error on {method} {path}: {e}")
            raise RemoteApiError(f"Network error: {e}", code="network") from e

        if response.status_code >= 400:
            raise _error_from_response(response)
        return response

    def select(
        self,
        table: str,
        columns: str = "*",
        *,
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        count: bool = False,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Read rows; filters use operator syntax, e.g. {"p_id": "ilike.IT-*"}.

        Returns (rows, total) where total is only populated when count=True.
        """
        params: dict[str, Any] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        headers = {"Prefer": "count=exact"} if count else None
        response = self._request("GET", f"/rest/v1/{table}", params=params, headers=headers)

        rows = _decode_json(response) or []
        total = None
        if count:
            content_range = response.headers.get("Content-Range", "")
            _, _, total_part = content_range.partition("/")
            total = int(total_part) if total_part.isdigit() else len(rows)
        return rows, total

    def first(
        self,
        table: str,
        columns: str = "*",
        *,
        filters: dict[str, str] | None = None,
        order: str | None = None,
    ) -> dict[str, Any] | None:
        rows, _ = self.select(table, columns, filters=filters, order=order, limit=1)
        return rows[0] if rows else None

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        """Call a stored procedure and return its decoded JSON result."""
        response = self._request("POST", f"/rest/v1/rpc/{name}", json_body=params or {})
        if not response.content:
            return None
        return _decode_json(response)

    def rpc_checked(self, name: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Call a procedure that reports {success, message} and raise on success=false."""
        result = self.rpc(name, params)
        if isinstance(result, dict) and result.get("success") is False:
            raise RemoteApiError(
                str(result.get("message") or f"{name} failed"),
                code=result.get("code"),
            )
        return result if isinstance(result, dict) else {"success": True, "data": result}

    def invoke_function(
        self,
        name: str,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """POST to an edge function."""
        response = self._request(
            "POST", f"/functions/v1/{name}", json_body=body or {}, headers=headers
        )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}
