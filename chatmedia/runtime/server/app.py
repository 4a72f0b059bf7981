"""Relay server -- app factory and entry point."""

from __future__ import annotations

import argparse
import logging

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger

from .. import __version__
from ..config import settings as settings_module
from ..config.settings import Settings
from .routes import InspectRoutes, RelayRoutes

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health"})


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes health checks and upstream-failure noise to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        status = response.status
        if request.path in _QUIET_PATHS or status in (502, 503, 504):
            level = logging.DEBUG
        else:
            level = logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path,
            status,
            time,
        )


async def _health(_req: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "version": __version__})


def create_app(settings: Settings | None = None) -> web.Application:
    cfg = settings or settings_module.cfg
    routes = cfg.relay_routes
    hosts = cfg.media_hosts

    relay = RelayRoutes(
        hosts,
        object_store_url=cfg.object_store_url,
        object_store_bucket=cfg.object_store_bucket,
        gateway_url=cfg.decrypt_gateway_url,
        gateway_key=cfg.decrypt_gateway_key,
        default_instance=cfg.default_messaging_instance,
        timeout=cfg.relay_timeout_seconds,
        routes=routes,
    )
    app = web.Application()
    app.router.add_get("/health", _health)
    relay.register(app.router)
    InspectRoutes(hosts, routes, cfg.default_messaging_instance).register(app.router)
    app.on_cleanup.append(relay.cleanup)
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="chatmedia relay server")
    parser.add_argument("--host", help="Bind address (default: RELAY_HOST)")
    parser.add_argument("--port", type=int, help="Listen port (default: RELAY_PORT)")
    args = parser.parse_args()

    cfg = settings_module.cfg
    cfg.reload()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )
    host = args.host or cfg.relay_host
    port = args.port or cfg.relay_port
    logger.info("Starting relay server on %s:%d (prefix=%r) ...", host, port, cfg.relay_prefix)
    logger.debug("Settings: %s", cfg.redacted())

    web.run_app(create_app(cfg), host=host, port=port, access_log_class=QuietAccessLogger)


if __name__ == "__main__":
    main()
