"""Consumer-facing bundle -- one chat message attachment, ready to render."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from urllib.parse import unquote

from .classify import classify, placeholder_kind
from .delivery import DeliveryState, MediaDelivery
from .hosts import DEFAULT_HOSTS, MediaHosts, split_url
from .kinds import MediaKind, TransportClass
from .memo import RelayMemo
from .relay import ROUTES, ProxyRoute, cache_bust, relay_url_for
from .transport import OBJECT_RELAY_PATH, Resolution, resolve

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_NAME = "document"

_LABELS: dict[MediaKind, str] = {
    MediaKind.image: "Image",
    MediaKind.video: "Video",
    MediaKind.audio: "Audio",
    MediaKind.document: "Document",
    MediaKind.sticker: "Sticker",
}


@dataclass(frozen=True)
class MessageMedia:
    """Attachment as it arrives on a chat message.

    *kind* is an optional hint from the sender; when present it wins over
    classification.  *media_url* takes precedence over *descriptor* as the
    thing to fetch.
    """

    descriptor: str
    kind: MediaKind | None = None
    media_url: str | None = None
    filename: str | None = None

    @property
    def source(self) -> str:
        return self.media_url or self.descriptor


@dataclass
class MediaView:
    kind: MediaKind
    resolution: Resolution
    delivery: MediaDelivery
    display_name: str
    placeholder: bool = False

    @property
    def state(self) -> DeliveryState:
        return self.delivery.state

    @property
    def failure_label(self) -> str:
        return failure_label(self.kind, placeholder=self.placeholder)


def prepare(
    message: MessageMedia,
    *,
    hosts: MediaHosts = DEFAULT_HOSTS,
    routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
    instance: str | None = None,
    memo: RelayMemo | None = None,
    listener: Callable[[DeliveryState], None] | None = None,
) -> MediaView:
    """Classify and resolve *message* and create its delivery instance."""
    source = message.source
    placeholder = _is_placeholder(message)
    kind = message.kind or classify(source, hosts)

    if placeholder:
        resolution = Resolution(TransportClass.invalid, source)
    else:
        secondary = routes.get(TransportClass.secondary_store)
        resolution = resolve(
            source, hosts, object_relay_path=secondary.path if secondary else OBJECT_RELAY_PATH,
        )

    name = display_name(message.filename, resolution)
    delivery = MediaDelivery(
        resolution,
        instance=instance,
        routes=routes,
        memo=memo,
        listener=listener,
        label=f"{kind.value}:{name}",
    )
    logger.debug(
        "[message] %s via %s (placeholder=%s)", kind.value, resolution.transport.value, placeholder,
    )
    return MediaView(
        kind=kind,
        resolution=resolution,
        delivery=delivery,
        display_name=name,
        placeholder=placeholder,
    )


def _is_placeholder(message: MessageMedia) -> bool:
    descriptor = message.descriptor or ""
    return (
        not message.media_url
        and "://" not in descriptor
        and placeholder_kind(descriptor) is not None
    )


def display_name(filename: str | None, resolution: Resolution) -> str:
    """Filename to show: the explicit one, else the URL basename."""
    if filename and filename.strip():
        return filename.strip()
    if resolution.object_name:
        return posixpath.basename(resolution.object_name) or DEFAULT_DOCUMENT_NAME
    if resolution.transport in (TransportClass.inline, TransportClass.invalid):
        return DEFAULT_DOCUMENT_NAME
    parts = split_url(resolution.original.strip())
    if parts is None:
        return DEFAULT_DOCUMENT_NAME
    name = posixpath.basename(unquote(parts.path).rstrip("/"))
    return name or DEFAULT_DOCUMENT_NAME


def failure_label(kind: MediaKind, *, placeholder: bool = False) -> str:
    """Neutral text shown in place of media that could not be delivered."""
    label = _LABELS.get(kind)
    if label is None:
        return ""
    if placeholder:
        return f"{label} sent, awaiting processing"
    return f"{label} unavailable"


def describe(
    view: MediaView,
    *,
    routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
    instance: str | None = None,
) -> dict[str, object]:
    """JSON-ready summary of how *view* would be delivered."""
    resolution = view.resolution
    return {
        "kind": view.kind.value,
        "transport": resolution.transport.value,
        "normalized": resolution.normalized,
        "direct": resolution.has_direct,
        "relay_url": relay_url_for(resolution, cache_bust(), instance=instance, routes=routes),
        "display_name": view.display_name,
        "placeholder": view.placeholder,
        "failure_label": view.failure_label,
    }
