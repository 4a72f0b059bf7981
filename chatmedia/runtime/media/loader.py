"""Media loader -- drives a delivery instance over aiohttp."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes, urljoin

import aiohttp

from .classify import data_url_media_type, looks_like_audio, sniff_content_type
from .delivery import DeliveryState, Origin
from .errors import TransportError
from .kinds import MediaKind
from .message import MediaView
from .probe import DEFAULT_PROBE_TIMEOUT_MS, ProbeResult, plan_playback

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024

_FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, binascii.Error, ValueError)


@dataclass
class LoadResult:
    state: DeliveryState
    data: bytes | None = None
    content_type: str | None = None
    probe: ProbeResult | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


class MediaLoader:
    """Fetches attachments, feeding every outcome back into the delivery.

    Relative relay URLs are joined onto *base_url*.  Audio gets an advisory
    probe before the first fetch; its result is reported but never changes
    the delivery.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self._session = session
        self._base_url = base_url
        self._timeout = timeout
        self._probe_timeout_ms = probe_timeout_ms
        self._max_bytes = max_bytes

    async def load(self, view: MediaView) -> LoadResult:
        delivery = view.delivery
        try:
            state = delivery.start()
            probe: ProbeResult | None = None
            while not state.terminal and not delivery.discarded:
                url = state.target_url
                if url is None:
                    break
                attempt = state.current_attempt
                # Relay targets are sniffed from the fetched bytes.
                if (
                    view.kind is MediaKind.audio
                    and probe is None
                    and attempt is not None
                    and attempt.origin is Origin.direct
                    and not url.startswith("data:")
                ):
                    probe = await plan_playback(
                        url, self._probe_timeout_ms, session=self._session, base_url=self._base_url,
                    )
                try:
                    data, content_type = await self._fetch(url)
                except _FETCH_ERRORS as exc:
                    error = TransportError.from_exception(exc)
                    logger.info("[loader] %s failed: %s %s", url, error.kind.value, error.detail)
                    next_state = delivery.fail(error, url=url)
                    if next_state is state:
                        break
                    state = next_state
                    continue
                state = delivery.succeed(url)
                if view.kind is MediaKind.audio and probe is None:
                    probe = ProbeResult(url=url, playable=looks_like_audio(data), play_url=url)
                if state.terminal:
                    return LoadResult(state, data=data, content_type=content_type, probe=probe)
            return LoadResult(state, probe=probe)
        except asyncio.CancelledError:
            delivery.discard()
            raise

    async def _fetch(self, url: str) -> tuple[bytes, str]:
        lowered = url.lower()
        if lowered.startswith("data:"):
            return _decode_data_url(url)
        if lowered.startswith("blob:"):
            raise aiohttp.InvalidURL(url)

        target = urljoin(self._base_url, url) if self._base_url else url
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        async with self._session.get(target, timeout=timeout) as resp:
            resp.raise_for_status()
            if resp.content_length is not None and resp.content_length > self._max_bytes:
                raise aiohttp.ClientPayloadError(f"payload exceeds {self._max_bytes} bytes")
            chunks: list[bytes] = []
            size = 0
            async for chunk in resp.content.iter_chunked(64 * 1024):
                size += len(chunk)
                if size > self._max_bytes:
                    raise aiohttp.ClientPayloadError(f"payload exceeds {self._max_bytes} bytes")
                chunks.append(chunk)
            data = b"".join(chunks)
            content_type = sniff_content_type(data) or resp.content_type
            return data, content_type


def _decode_data_url(url: str) -> tuple[bytes, str]:
    header, sep, payload = url[len("data:"):].partition(",")
    if not sep:
        raise ValueError("data URL without payload")
    content_type = data_url_media_type(url) or "text/plain"
    if header.lower().endswith(";base64"):
        return base64.b64decode(payload, validate=True), content_type
    return unquote_to_bytes(payload), content_type
