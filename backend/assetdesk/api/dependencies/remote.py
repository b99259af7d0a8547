"""Hosted database, query cache and app-state dependencies."""

from collections.abc import Generator

from fastapi import Header, Request

from assetdesk.clients.hosted_db import HostedDbClient
from assetdesk.core.config import get_settings
from assetdesk.services.capabilities import RemoteCapabilities
from assetdesk.services.query_cache import QueryCache, scope_for_token
from assetdesk.services.return_flow import InFlightReturns
from assetdesk.utils.redis_client import get_redis


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header value."""
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def get_hosted_db(
    authorization: str | None = Header(None),
) -> Generator[HostedDbClient, None, None]:
    """Client scoped to one request, forwarding the caller's token so row-level security applies."""
    client = HostedDbClient.from_settings(get_settings(), access_token=bearer_token(authorization))
    try:
        yield client
    finally:
        client.close()


def get_query_cache(authorization: str | None = Header(None)) -> QueryCache:
    """Cache whose keys are scoped to the caller, so cached rows never cross callers."""
    return QueryCache(
        get_redis(),
        get_settings().query_cache_ttl,
        scope=scope_for_token(bearer_token(authorization)),
    )


def get_capabilities(request: Request) -> RemoteCapabilities:
    return request.app.state.capabilities


def get_in_flight_returns(request: Request) -> InFlightReturns:
    return request.app.state.in_flight_returns
