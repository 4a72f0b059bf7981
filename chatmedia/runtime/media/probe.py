"""Playability prober -- advisory check that a URL serves decodable audio."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import aiohttp

from .classify import looks_like_audio

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5000
PROBE_HEAD_BYTES = 64 * 1024
_MIN_SNIFF_BYTES = 12


@dataclass(frozen=True)
class ProbeResult:
    url: str
    playable: bool
    play_url: str


async def probe(
    url: str,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    *,
    session: aiohttp.ClientSession,
    base_url: str = "",
) -> bool:
    """Return True once the head of *url* is buffered and sniffs as audio.

    Any failure (network error, non-2xx status, non-audio bytes or the
    timeout elapsing first) yields False.  Never raises, except for
    cancellation of the calling task.
    """
    target = urljoin(base_url, url) if base_url else url
    try:
        return await asyncio.wait_for(_read_head(target, session), timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.debug("[probe] timed out after %dms: %s", timeout_ms, target)
        return False
    except (aiohttp.ClientError, ValueError) as exc:
        logger.debug("[probe] %s: %s", type(exc).__name__, target)
        return False


async def _read_head(url: str, session: aiohttp.ClientSession) -> bool:
    headers = {"Range": f"bytes=0-{PROBE_HEAD_BYTES - 1}"}
    async with session.get(url, headers=headers) as resp:
        if resp.status >= 300:
            logger.debug("[probe] HTTP %d: %s", resp.status, url)
            return False
        head = b""
        async for chunk in resp.content.iter_chunked(4096):
            head += chunk
            if len(head) >= _MIN_SNIFF_BYTES:
                break
        return looks_like_audio(head)


async def plan_playback(
    url: str,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    *,
    session: aiohttp.ClientSession,
    base_url: str = "",
) -> ProbeResult:
    """Probe *url* and decide what to play.

    The probe is advisory: an unplayable result is logged and the same URL
    is still played directly once.
    """
    playable = await probe(url, timeout_ms, session=session, base_url=base_url)
    if not playable:
        logger.info("[probe] %s not confirmed playable, attempting direct playback", url)
    return ProbeResult(url=url, playable=playable, play_url=url)
