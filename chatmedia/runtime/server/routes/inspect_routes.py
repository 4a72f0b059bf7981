"""Inspection API -- /api/media/inspect."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from aiohttp import web

from ...media.hosts import MediaHosts
from ...media.kinds import MediaKind, TransportClass
from ...media.message import MessageMedia, describe, prepare
from ...media.relay import ProxyRoute
from ._helpers import CORS_HEADERS, error_response

logger = logging.getLogger(__name__)


class InspectRoutes:
    """Reports how a descriptor would be classified, resolved and relayed."""

    def __init__(
        self,
        hosts: MediaHosts,
        routes: Mapping[TransportClass, ProxyRoute],
        default_instance: str = "default",
    ) -> None:
        self._hosts = hosts
        self._routes = routes
        self._default_instance = default_instance

    def register(self, router: web.UrlDispatcher) -> None:
        router.add_get("/api/media/inspect", self._inspect)

    async def _inspect(self, req: web.Request) -> web.Response:
        descriptor = req.query.get("descriptor", "")
        if not descriptor:
            return error_response(400, "Missing descriptor parameter")
        raw_kind = req.query.get("kind", "")
        try:
            kind = MediaKind(raw_kind) if raw_kind else None
        except ValueError:
            return error_response(400, f"Unknown kind: {raw_kind}")
        instance = req.query.get("instance") or self._default_instance

        view = prepare(
            MessageMedia(descriptor, kind=kind, filename=req.query.get("filename")),
            hosts=self._hosts,
            routes=self._routes,
            instance=instance,
        )
        body = describe(view, routes=self._routes, instance=instance)
        return web.json_response({"status": "ok", **body}, headers=CORS_HEADERS)
