"""Shared helpers for route handlers."""

from __future__ import annotations

from aiohttp import web

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Requested-With",
}


def error_response(status: int, message: str) -> web.Response:
    """Return the standard JSON error envelope with CORS headers attached."""
    return web.json_response(
        {"status": "error", "message": message}, status=status, headers=CORS_HEADERS,
    )


async def preflight(_req: web.Request) -> web.Response:
    return web.Response(
        status=200,
        headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400", "Vary": "Origin"},
    )


def media_response(
    data: bytes,
    content_type: str,
    *,
    extra_headers: dict[str, str] | None = None,
) -> web.Response:
    headers = {
        **CORS_HEADERS,
        "Cache-Control": "public, max-age=3600",
        **(extra_headers or {}),
    }
    return web.Response(body=data, content_type=content_type.split(";", 1)[0].strip(), headers=headers)
