from __future__ import annotations

import fnmatch
import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

_TMP = Path(tempfile.mkdtemp(prefix="assetdesk-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'jobs.db'}"
os.environ["UPLOADS_DIR"] = str(_TMP / "uploads")
os.environ["REDIS_URL"] = "redis://localhost:6399/15"
os.environ["HOSTED_DB_URL"] = "http://hosted.test"
os.environ["HOSTED_DB_KEY"] = "anon-key"

from assetdesk.clients.hosted_db import RemoteApiError  # noqa: E402
import assetdesk.db.models  # noqa: E402,F401
from assetdesk.db.base import Base  # noqa: E402
from assetdesk.db.session import engine  # noqa: E402
from assetdesk.services.query_cache import QueryCache  # noqa: E402


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis calls the app makes."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self.store.get(key)

    def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match: str = "*"):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class FakeHostedDb:
    """Records calls and answers from canned tables, procedure results and last ids."""

    def __init__(
        self,
        tables: dict[str, Any] | None = None,
        rpc_results: dict[str, Any] | None = None,
        function_results: dict[str, Any] | None = None,
        last_ids: dict[str, str] | None = None,
    ) -> None:
        self.tables = tables or {}
        self.rpc_results = rpc_results or {}
        self.function_results = function_results or {}
        self.last_ids = last_ids or {}
        self.selects: list[dict[str, Any]] = []
        self.rpc_calls: list[tuple[str, Any]] = []
        self.function_calls: list[tuple[str, Any, Any]] = []

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
    ):
        self.selects.append(
            {
                "table": table,
                "columns": columns,
                "filters": dict(filters or {}),
                "order": order,
                "limit": limit,
                "offset": offset,
            }
        )
        rows = self.tables.get(table, [])
        if isinstance(rows, Exception):
            raise rows
        return list(rows), (len(rows) if count else None)

    def first(self, table: str, columns: str = "*", *, filters=None, order=None):
        self.selects.append({"table": table, "filters": dict(filters or {}), "order": order})
        pattern = next(iter((filters or {}).values()), "")
        prefix = pattern.removeprefix("ilike.").removesuffix("-*")
        last = self.last_ids.get(prefix)
        return {columns: last} if last else None

    def _answer(self, source: dict[str, Any], name: str, payload: Any) -> Any:
        result = source.get(name)
        if callable(result):
            result = result(payload)
        if isinstance(result, Exception):
            raise result
        return result

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        self.rpc_calls.append((name, params))
        return self._answer(self.rpc_results, name, params)

    def rpc_checked(self, name: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        result = self.rpc(name, params)
        if isinstance(result, dict) and result.get("success") is False:
            raise RemoteApiError(str(result.get("message")), code=result.get("code"))
        return result if isinstance(result, dict) else {"success": True, "data": result}

    def invoke_function(self, name: str, body=None, headers=None) -> Any:
        self.function_calls.append((name, body, headers))
        return self._answer(self.function_results, name, body)

    def close(self) -> None:
        pass


@pytest.fixture()
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    redis = FakeRedis()
    monkeypatch.setattr("assetdesk.services.progress_tracker.get_redis", lambda: redis)
    monkeypatch.setattr("assetdesk.storage.uploads._binary_redis", lambda: redis)
    return redis


@pytest.fixture()
def cache(fake_redis: FakeRedis) -> QueryCache:
    return QueryCache(fake_redis, ttl_seconds=60)


@pytest.fixture()
def hosted_db() -> FakeHostedDb:
    return FakeHostedDb()


@pytest.fixture()
def job_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
