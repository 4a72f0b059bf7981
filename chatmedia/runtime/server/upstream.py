"""Upstream fetches shared by the relay handlers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 50 * 1024 * 1024

_FETCH_HEADERS = {
    "User-Agent": "chatmedia-relay",
    "Accept": "*/*",
    "Cache-Control": "no-cache",
}


class UpstreamError(Exception):
    """An upstream fetch that the relay must answer with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


@dataclass(frozen=True)
class UpstreamResponse:
    data: bytes
    content_type: str
    status: int = 200


async def fetch_bytes(
    session: aiohttp.ClientSession,
    url: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> UpstreamResponse:
    """GET *url* and return its body, or raise :class:`UpstreamError`."""
    try:
        async with session.get(
            url,
            headers={**_FETCH_HEADERS, **(headers or {})},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status >= 400:
                logger.debug("[upstream] %s returned %d", url, resp.status)
                raise UpstreamError(resp.status, f"Upstream returned {resp.status}")
            if resp.content_length is not None and resp.content_length > max_bytes:
                raise UpstreamError(413, "Upstream payload too large")
            chunks: list[bytes] = []
            size = 0
            async for chunk in resp.content.iter_chunked(64 * 1024):
                size += len(chunk)
                if size > max_bytes:
                    raise UpstreamError(413, "Upstream payload too large")
                chunks.append(chunk)
            data = b"".join(chunks)
            return UpstreamResponse(
                data=data,
                content_type=resp.headers.get("Content-Type", "application/octet-stream"),
                status=resp.status,
            )
    except asyncio.TimeoutError:
        logger.debug("[upstream] timed out: %s", url)
        raise UpstreamError(408, "Upstream timed out")
    except (aiohttp.ClientConnectorError, aiohttp.ClientOSError, OSError):
        logger.debug("[upstream] unreachable: %s", url)
        raise UpstreamError(502, "Upstream unreachable")
    except aiohttp.ClientError:
        logger.warning("[upstream] fetch error: %s", url, exc_info=True)
        raise UpstreamError(502, "Upstream unreachable")
