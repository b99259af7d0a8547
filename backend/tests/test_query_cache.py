import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from assetdesk.api.dependencies.remote import get_query_cache
from assetdesk.services import catalog
from assetdesk.services.query_cache import (
    ANONYMOUS_SCOPE,
    QueryCache,
    optimistic_update,
    scope_for_token,
)


def test_get_or_load_caches_loader_result(cache):
    calls = []

    def loader():
        calls.append(1)
        return [{"id": 1}]

    key = cache.key("products", "list", "")
    assert cache.get_or_load(key, loader) == [{"id": 1}]
    assert cache.get_or_load(key, loader) == [{"id": 1}]
    assert len(calls) == 1


def test_invalidate_drops_only_named_namespaces(cache, fake_redis):
    cache.set(cache.key("products", "list", ""), [])
    cache.set(cache.key("products", "list", "dell"), [])
    cache.set(cache.key("dashboard", "summary"), {})

    assert cache.invalidate("products") == 2
    assert list(fake_redis.store) == [cache.key("dashboard", "summary")]


def test_optimistic_update_applies_then_keeps_on_success(cache):
    key = cache.key("serials", "list", "")
    cache.set(key, [{"id": "s1", "status": "ready"}])

    with optimistic_update(cache, key, lambda rows: [{**r, "status": "repair"} for r in rows]):
        assert cache.get(key) == [{"id": "s1", "status": "repair"}]

    assert cache.get(key) == [{"id": "s1", "status": "repair"}]


def test_optimistic_update_restores_snapshot_on_failure(cache):
    key = cache.key("serials", "list", "")
    cache.set(key, [{"id": "s1", "status": "ready"}])

    with pytest.raises(RuntimeError):
        with optimistic_update(cache, key, lambda rows: []):
            raise RuntimeError("rpc failed")

    assert cache.get(key) == [{"id": "s1", "status": "ready"}]


class BrokenRedis:
    def get(self, key):
        raise RedisConnectionError("down")

    def set(self, key, value, ex=None):
        raise RedisConnectionError("down")

    def scan_iter(self, match="*"):
        raise RedisConnectionError("down")


def test_redis_outage_degrades_to_misses():
    cache = QueryCache(BrokenRedis())
    assert cache.get_or_load("qcache:products:list:", lambda: ["fresh"]) == ["fresh"]
    assert cache.invalidate("products") == 0


def test_callers_with_different_tokens_do_not_share_cached_rows(fake_redis, hosted_db):
    admin_cache = QueryCache(fake_redis, scope=scope_for_token("admin-token"))
    anon_cache = QueryCache(fake_redis, scope=scope_for_token(None))

    hosted_db.tables = {"products": [{"id": "secret-product"}]}
    assert catalog.list_products(hosted_db, cache=admin_cache) == [{"id": "secret-product"}]

    hosted_db.tables = {"products": [{"id": "public-product"}]}
    assert catalog.list_products(hosted_db, cache=anon_cache) == [{"id": "public-product"}]
    assert len(hosted_db.selects) == 2

    assert catalog.list_products(hosted_db, cache=admin_cache) == [{"id": "secret-product"}]
    assert len(hosted_db.selects) == 2


def test_scope_is_a_hash_of_the_token():
    scope = scope_for_token("user-jwt")
    assert scope == scope_for_token("user-jwt")
    assert scope != scope_for_token("other-jwt")
    assert "user-jwt" not in scope
    assert scope_for_token("") == ANONYMOUS_SCOPE


def test_invalidate_covers_every_caller_scope(fake_redis):
    first = QueryCache(fake_redis, scope=scope_for_token("a"))
    second = QueryCache(fake_redis, scope=scope_for_token("b"))
    first.set(first.key("serials", "list", ""), [])
    second.set(second.key("serials", "list", ""), [])

    assert first.invalidate("serials") == 2
    assert fake_redis.store == {}


def test_query_cache_dependency_scopes_by_bearer_token(monkeypatch, fake_redis):
    monkeypatch.setattr("assetdesk.api.dependencies.remote.get_redis", lambda: fake_redis)

    signed_in = get_query_cache("Bearer user-jwt")
    anonymous = get_query_cache(None)

    assert signed_in.scope == scope_for_token("user-jwt")
    assert anonymous.scope == ANONYMOUS_SCOPE
    assert signed_in.key("products", "list", "") != anonymous.key("products", "list", "")
