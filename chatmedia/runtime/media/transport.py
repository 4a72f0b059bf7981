"""Transport resolution -- which origin serves a descriptor, and how to reach it."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, quote, unquote, urlunsplit

from .classify import is_unlabeled_payload
from .hosts import DEFAULT_HOSTS, MediaHosts, split_url
from .kinds import TransportClass

OBJECT_RELAY_PATH = "/object-relay"
OBJECT_NAME_PARAM = "objectName"

_DOUBLE_ENCODED_SLASH = re.compile("%252F", re.IGNORECASE)
_NETWORK_SCHEMES = frozenset({"http", "https"})
_INLINE_PREFIXES = ("data:", "blob:")


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one descriptor.

    ``normalized`` is ``None`` when the descriptor cannot be fetched at all;
    such a resolution never produces a network attempt.
    """

    transport: TransportClass
    original: str
    normalized: str | None = None
    object_name: str | None = None

    @property
    def valid(self) -> bool:
        return self.normalized is not None

    @property
    def has_direct(self) -> bool:
        """Whether a direct attempt is possible before any relay."""
        return self.valid and self.transport is not TransportClass.encrypted_source


def _invalid(descriptor: str, transport: TransportClass = TransportClass.invalid) -> Resolution:
    return Resolution(transport=transport, original=descriptor)


def resolve(
    descriptor: object,
    hosts: MediaHosts = DEFAULT_HOSTS,
    *,
    object_relay_path: str = OBJECT_RELAY_PATH,
) -> Resolution:
    """Resolve *descriptor* to a transport class and normalized URL.

    Secondary-store objects are not publicly addressable, so their
    normalized form is a reference to the object relay mounted at
    *object_relay_path*.
    """
    if not isinstance(descriptor, str):
        return _invalid("")
    content = descriptor.strip()
    if not content:
        return _invalid(descriptor)

    if content.lower().startswith(_INLINE_PREFIXES):
        return Resolution(TransportClass.inline, descriptor, normalized=content)

    if is_object_relay_reference(content, hosts):
        name = object_name_from_reference(content)
        if not name:
            return _invalid(descriptor, TransportClass.secondary_store)
        return Resolution(
            TransportClass.secondary_store, descriptor,
            normalized=object_relay_reference(name, object_relay_path), object_name=name,
        )

    if is_unlabeled_payload(content):
        return Resolution(
            TransportClass.inline, descriptor,
            normalized=f"data:image/jpeg;base64,{content}",
        )

    parts = split_url(content)
    if (
        parts is None
        or parts.scheme.lower() not in _NETWORK_SCHEMES
        or not parts.netloc
        or any(ch.isspace() for ch in content)
    ):
        return _invalid(descriptor)

    if hosts.is_primary_store(parts):
        repaired = repair_double_encoding(content)
        if hosts.media_marker and hosts.media_marker not in (split_url(repaired) or parts).query:
            return _invalid(descriptor, TransportClass.primary_store)
        return Resolution(TransportClass.primary_store, descriptor, normalized=repaired)

    if hosts.is_secondary_store(parts):
        name = unquote(posixpath.basename(parts.path.rstrip("/")))
        if not name:
            return _invalid(descriptor, TransportClass.secondary_store)
        return Resolution(
            TransportClass.secondary_store, descriptor,
            normalized=object_relay_reference(name, object_relay_path), object_name=name,
        )

    if hosts.is_encrypted(parts):
        return Resolution(TransportClass.encrypted_source, descriptor, normalized=content)

    return Resolution(TransportClass.generic_http, descriptor, normalized=content)


def repair_double_encoding(url: str) -> str:
    """Collapse a doubly-escaped path separator (``%252F``) to ``%2F``.

    Only the path is touched; the query string is left as-is.  Applying the
    repair to an already-repaired URL returns it unchanged.
    """
    parts = split_url(url)
    if parts is None or not _DOUBLE_ENCODED_SLASH.search(parts.path):
        return url
    path = _DOUBLE_ENCODED_SLASH.sub("%2F", parts.path)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def object_relay_reference(object_name: str, path: str = OBJECT_RELAY_PATH) -> str:
    return f"{path}?{OBJECT_NAME_PARAM}={quote(object_name, safe='')}"


def is_object_relay_reference(content: str, hosts: MediaHosts = DEFAULT_HOSTS) -> bool:
    """True for a descriptor already addressed through the object relay."""
    parts = split_url(content)
    if parts is None:
        return False
    if parts.netloc and not hosts.is_secondary_store(parts):
        return False
    return parts.path.rstrip("/").endswith(OBJECT_RELAY_PATH)


def object_name_from_reference(reference: str) -> str | None:
    parts = split_url(reference)
    if parts is None:
        return None
    query = parse_qs(parts.query)
    for key in (OBJECT_NAME_PARAM, "object"):
        values = query.get(key)
        if values and values[0]:
            return values[0]
    return None
