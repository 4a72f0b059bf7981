"""Transport errors -- one normalized shape for every load failure."""

from __future__ import annotations

import asyncio
import binascii
import enum
from dataclasses import dataclass

import aiohttp


class TransportErrorKind(enum.Enum):
    network = "network"
    cors = "cors"
    http_status = "http-status"
    timeout = "timeout"
    decode = "decode"
    invalid = "invalid"


class FailureReason(enum.Enum):
    """Why a delivery ended in ``failed``."""

    transport_invalid = "transport-invalid"
    direct_failed = "direct-failed"
    relay_failed = "relay-failed"


@dataclass(frozen=True)
class TransportError:
    """A load failure, classified once at the boundary.

    The state machine only ever sees this value, never the exception or
    status object that produced it.
    """

    kind: TransportErrorKind
    status: int | None = None
    detail: str = ""

    @classmethod
    def from_status(cls, status: int, detail: str = "") -> TransportError:
        # Browsers surface a blocked cross-origin read as an opaque failure;
        # relays report the upstream's 401/403 the same way.
        kind = TransportErrorKind.cors if status in (401, 403) else TransportErrorKind.http_status
        return cls(kind, status=status, detail=detail or f"HTTP {status}")

    @classmethod
    def from_exception(cls, exc: BaseException) -> TransportError:
        if isinstance(exc, aiohttp.ClientResponseError):
            return cls.from_status(exc.status, exc.message or "")
        if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
            return cls(TransportErrorKind.timeout, detail="timed out")
        if isinstance(exc, aiohttp.InvalidURL):
            return cls(TransportErrorKind.invalid, detail=str(exc))
        if isinstance(exc, (binascii.Error, UnicodeDecodeError)):
            return cls(TransportErrorKind.decode, detail=str(exc))
        return cls(TransportErrorKind.network, detail=type(exc).__name__)


# User-facing reasons; never include transport detail.
_REASONS: dict[FailureReason, str] = {
    FailureReason.transport_invalid: "This attachment link is not retrievable.",
    FailureReason.direct_failed: "The attachment could not be loaded.",
    FailureReason.relay_failed: "The attachment could not be loaded, even through the media relay.",
}


def reason_text(reason: FailureReason) -> str:
    return _REASONS[reason]
