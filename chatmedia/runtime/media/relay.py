"""Proxy router -- relay endpoint templates keyed by transport class."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from urllib.parse import quote

from .kinds import TransportClass
from .transport import (
    OBJECT_NAME_PARAM,
    OBJECT_RELAY_PATH,
    Resolution,
    object_name_from_reference,
)

MEDIA_RELAY_PATH = "/media-relay"
DECRYPT_RELAY_PATH = "/decrypt-relay"

CACHE_BUST_PARAM = "_t"
DEFAULT_INSTANCE = "default"


@dataclass(frozen=True)
class ProxyRoute:
    """A relay endpoint and the query parameters it requires."""

    path: str
    identity_param: str
    by_object_name: bool = False
    needs_instance: bool = False
    cache_bust_param: str = CACHE_BUST_PARAM

    def build(self, identity: str, cache_bust: int, instance: str | None = None) -> str:
        params = [(self.identity_param, identity)]
        if self.needs_instance:
            params.append(("instance", instance or DEFAULT_INSTANCE))
        params.append((self.cache_bust_param, str(cache_bust)))
        query = "&".join(f"{k}={quote(v, safe='')}" for k, v in params)
        return f"{self.path}?{query}"


def build_routes(prefix: str = "") -> Mapping[TransportClass, ProxyRoute]:
    """Return a read-only route table with every path mounted under *prefix*."""
    prefix = prefix.rstrip("/")
    return MappingProxyType({
        TransportClass.primary_store: ProxyRoute(prefix + MEDIA_RELAY_PATH, "url"),
        TransportClass.secondary_store: ProxyRoute(
            prefix + OBJECT_RELAY_PATH, OBJECT_NAME_PARAM, by_object_name=True,
        ),
        TransportClass.encrypted_source: ProxyRoute(
            prefix + DECRYPT_RELAY_PATH, "url", needs_instance=True,
        ),
    })


ROUTES = build_routes()


def cache_bust() -> int:
    """Millisecond timestamp used to defeat cached relay failures."""
    return time.time_ns() // 1_000_000


def route_for(
    transport: TransportClass,
    normalized: str | None,
    cache_bust: int,
    *,
    object_name: str | None = None,
    instance: str | None = None,
    routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
) -> str | None:
    """Build the relay URL for *transport*, or ``None`` when no relay exists.

    The object-store relay only ever receives the object identifier; it is
    taken from *object_name* or parsed from the relay-ready *normalized*
    reference.
    """
    route = routes.get(transport)
    if route is None or not normalized:
        return None
    if route.by_object_name:
        identity = object_name or object_name_from_reference(normalized)
        if not identity:
            return None
    else:
        identity = normalized
    return route.build(identity, cache_bust, instance)


def relay_url_for(
    resolution: Resolution,
    cache_bust: int,
    *,
    instance: str | None = None,
    routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
) -> str | None:
    return route_for(
        resolution.transport,
        resolution.normalized,
        cache_bust,
        object_name=resolution.object_name,
        instance=instance,
        routes=routes,
    )


def has_route(transport: TransportClass, routes: Mapping[TransportClass, ProxyRoute] = ROUTES) -> bool:
    return transport in routes
