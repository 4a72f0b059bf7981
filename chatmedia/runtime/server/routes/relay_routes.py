"""Relay routes -- /media-relay, /object-relay and /decrypt-relay."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import aiohttp
from aiohttp import web

from ...media.classify import looks_like_audio, sniff_content_type
from ...media.hosts import MediaHosts, split_url
from ...media.kinds import TransportClass
from ...media.relay import DECRYPT_RELAY_PATH, MEDIA_RELAY_PATH, ProxyRoute
from ...media.transport import OBJECT_RELAY_PATH
from ..decrypt_gateway import DecryptGateway
from ..object_store import InvalidObjectName, ObjectStoreClient, validate_object_name
from ..upstream import UpstreamError, fetch_bytes
from ._helpers import error_response, media_response, preflight

logger = logging.getLogger(__name__)


class RelayRoutes:
    """Server side of the proxy routes.

    One ``aiohttp.ClientSession`` is created lazily and shared by all three
    relays; :meth:`cleanup` closes it on application shutdown.
    """

    def __init__(
        self,
        hosts: MediaHosts,
        *,
        object_store_url: str,
        object_store_bucket: str,
        gateway_url: str,
        gateway_key: str = "",
        default_instance: str = "default",
        timeout: float = 30.0,
        routes: Mapping[TransportClass, ProxyRoute] | None = None,
    ) -> None:
        self._hosts = hosts
        self._object_store_url = object_store_url
        self._object_store_bucket = object_store_bucket
        self._gateway_url = gateway_url
        self._gateway_key = gateway_key
        self._default_instance = default_instance
        self._timeout = timeout
        self._routes = routes
        self._session: aiohttp.ClientSession | None = None

    def register(self, router: web.UrlDispatcher) -> None:
        for path, handler in (
            (self._path(TransportClass.primary_store, MEDIA_RELAY_PATH), self._media),
            (self._path(TransportClass.secondary_store, OBJECT_RELAY_PATH), self._object),
            (self._path(TransportClass.encrypted_source, DECRYPT_RELAY_PATH), self._decrypt),
        ):
            router.add_get(path, handler)
            router.add_route("OPTIONS", path, preflight)

    async def cleanup(self, _app: web.Application) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _path(self, transport: TransportClass, default: str) -> str:
        route = self._routes.get(transport) if self._routes else None
        return route.path if route else default

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _media(self, req: web.Request) -> web.Response:
        """Relay a primary-store URL."""
        url = req.query.get("url", "")
        if not url:
            return error_response(400, "Missing url parameter")
        parts = split_url(url)
        if parts is None or not self._hosts.is_primary_store(parts):
            return error_response(403, "URL is not an allowed media origin")

        session = await self._get_session()
        try:
            upstream = await fetch_bytes(session, url, timeout=self._timeout)
        except UpstreamError as exc:
            logger.info("[relay.media] %d %s", exc.status, exc.message)
            return error_response(exc.status, exc.message)
        content_type = sniff_content_type(upstream.data) or upstream.content_type
        return media_response(upstream.data, content_type)

    async def _object(self, req: web.Request) -> web.Response:
        """Relay an object from the private bucket, addressed by name only."""
        name = req.query.get("objectName") or req.query.get("object") or ""
        try:
            name = validate_object_name(name, req.query.get("ticketId"))
        except InvalidObjectName as exc:
            return error_response(400, str(exc))
        except PermissionError as exc:
            return error_response(403, str(exc))

        client = ObjectStoreClient(
            await self._get_session(),
            self._object_store_url,
            self._object_store_bucket,
            timeout=self._timeout,
        )
        try:
            upstream = await client.fetch(name)
        except UpstreamError as exc:
            logger.info("[relay.object] %s: %d %s", name, exc.status, exc.message)
            return error_response(exc.status, exc.message)
        return media_response(upstream.data, upstream.content_type)

    async def _decrypt(self, req: web.Request) -> web.Response:
        """Relay an encrypted messaging-platform URL through the gateway."""
        url = req.query.get("url", "")
        if not url:
            return error_response(400, "Missing url parameter")
        parts = split_url(url)
        if parts is None or not self._hosts.is_messaging(parts):
            return error_response(403, "URL is not a messaging media origin")
        if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
            return error_response(400, "Invalid url parameter")
        instance = req.query.get("instance") or self._default_instance

        gateway = DecryptGateway(
            await self._get_session(),
            self._gateway_url,
            self._gateway_key,
            timeout=self._timeout,
        )
        try:
            upstream = await gateway.download(url, instance)
        except UpstreamError as exc:
            logger.info("[relay.decrypt] %d %s", exc.status, exc.message)
            return error_response(exc.status, exc.message)
        valid_audio = looks_like_audio(upstream.data)
        return media_response(
            upstream.data,
            upstream.content_type,
            extra_headers={"X-Is-Valid-Audio": str(valid_audio).lower()},
        )
