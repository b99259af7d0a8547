"""Redis-backed cache for list views, with namespace invalidation.

Keys look like ``qcache:<namespace>:<scope>:<suffix>``. The scope is derived
from the caller's access token, because row-level security means two callers
may see different rows for the same query. Invalidating a namespace drops the
keys of every scope so the next read goes back to the hosted database.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CACHE_PREFIX = "qcache:"

PRODUCTS = "products"
SERIALS = "serials"
TRANSACTIONS = "transactions"
EMPLOYEES = "employees"
DASHBOARD = "dashboard"

ANONYMOUS_SCOPE = "anon"


def scope_for_token(access_token: str | None) -> str:
    """Stable, non-reversible cache scope for a caller."""
    if not access_token:
        return ANONYMOUS_SCOPE
    return hashlib.sha256(access_token.encode("utf-8")).hexdigest()[:16]


class QueryCache:
    """JSON values in Redis; every Redis failure degrades to a cache miss."""

    def __init__(
        self,
        redis_client: Redis,
        ttl_seconds: int = 300,
        *,
        scope: str = ANONYMOUS_SCOPE,
    ) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds
        self.scope = scope

    def key(self, namespace: str, *parts: Any) -> str:
        suffix = ":".join("" if part is None else str(part) for part in parts)
        return f"{CACHE_PREFIX}{namespace}:{self.scope}:{suffix}"

    def get(self, key: str) -> Any | None:
        try:
            raw = self._redis.get(key)
        except RedisError as e:
            logger.warning(f"Query cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self._redis.set(key, json.dumps(value, default=str), ex=self._ttl)
        except RedisError as e:
            logger.warning(f"Query cache write failed for {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except RedisError as e:
            logger.warning(f"Query cache delete failed for {key}: {e}")

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, *namespaces: str) -> int:
        """Drop every cached entry under the given namespaces."""
        removed = 0
        for namespace in namespaces:
            pattern = f"{CACHE_PREFIX}{namespace}:*"
            try:
                keys = list(self._redis.scan_iter(match=pattern))
                if keys:
                    removed += self._redis.delete(*keys)
            except RedisError as e:
                logger.warning(f"Query cache invalidation failed for {namespace}: {e}")
        if removed:
            logger.debug(f"Invalidated {removed} cached view(s) in {namespaces}")
        return removed


@contextmanager
def optimistic_update(
    cache: QueryCache,
    key: str,
    mutate: Callable[[Any], Any],
) -> Iterator[Any]:
    """Apply a speculative change to a cached value around a remote call.

    The previous value is captured, ``mutate`` produces the speculative value
    which is written immediately, and the body performs the remote call. On
    any exception the snapshot is restored (or the key dropped if nothing was
    cached) and the exception propagates.
    """
    snapshot = cache.get(key)
    speculative = mutate(snapshot) if snapshot is not None else None
    if speculative is not None:
        cache.set(key, speculative)
    try:
        yield speculative
    except Exception:
        if snapshot is not None:
            cache.set(key, snapshot)
        else:
            cache.delete(key)
        raise
