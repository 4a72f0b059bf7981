"""Media handling -- classification, transport resolution, delivery and probing."""

from .classify import EXTENSION_TO_MIME, classify, content_type_for, looks_like_audio, sniff_content_type
from .delivery import DeliveryState, MediaDelivery, Phase, Status, reduce
from .errors import FailureReason, TransportError, TransportErrorKind
from .hosts import DEFAULT_HOSTS, MediaHosts
from .kinds import MediaKind, TransportClass
from .loader import LoadResult, MediaLoader
from .memo import RelayMemo
from .message import MediaView, MessageMedia, describe, failure_label, prepare
from .probe import ProbeResult, plan_playback, probe
from .relay import ROUTES, ProxyRoute, build_routes, cache_bust, route_for
from .transport import Resolution, repair_double_encoding, resolve

__all__ = [
    "DEFAULT_HOSTS",
    "EXTENSION_TO_MIME",
    "ROUTES",
    "DeliveryState",
    "FailureReason",
    "LoadResult",
    "MediaDelivery",
    "MediaHosts",
    "MediaKind",
    "MediaLoader",
    "MediaView",
    "MessageMedia",
    "Phase",
    "ProbeResult",
    "ProxyRoute",
    "RelayMemo",
    "Resolution",
    "Status",
    "TransportClass",
    "TransportError",
    "TransportErrorKind",
    "build_routes",
    "cache_bust",
    "describe",
    "classify",
    "content_type_for",
    "failure_label",
    "looks_like_audio",
    "plan_playback",
    "prepare",
    "probe",
    "reduce",
    "repair_double_encoding",
    "resolve",
    "route_for",
    "sniff_content_type",
]
