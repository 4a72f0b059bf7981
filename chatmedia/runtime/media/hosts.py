"""Host tables -- which origins belong to which transport."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

PRIMARY_STORE_HOSTS: tuple[str, ...] = ("firebasestorage.googleapis.com",)
PRIMARY_STORE_MEDIA_MARKER = "alt=media"
SECONDARY_STORE_MARKERS: tuple[str, ...] = ("minio", "localhost:9000")
MESSAGING_MEDIA_HOSTS: tuple[str, ...] = (
    "mmg.whatsapp.net",
    "pps.whatsapp.net",
    "media.whatsapp.net",
)
ENCRYPTED_SUFFIX = ".enc"


def split_url(value: str) -> SplitResult | None:
    """Return ``urlsplit(value)``, or ``None`` when it cannot be parsed."""
    try:
        return urlsplit(value)
    except ValueError:
        return None


def _hostname(parts: SplitResult) -> str:
    try:
        return (parts.hostname or "").lower()
    except ValueError:
        return ""


@dataclass(frozen=True)
class MediaHosts:
    """Origin patterns used by classification and transport resolution.

    *primary_hosts* and *messaging_hosts* match the URL hostname exactly (or
    as a parent domain).  *secondary_markers* are substrings of the network
    location, which is how self-hosted object stores are usually recognised
    (``minio.internal``, ``localhost:9000``).
    """

    primary_hosts: tuple[str, ...] = PRIMARY_STORE_HOSTS
    media_marker: str = PRIMARY_STORE_MEDIA_MARKER
    secondary_markers: tuple[str, ...] = SECONDARY_STORE_MARKERS
    messaging_hosts: tuple[str, ...] = MESSAGING_MEDIA_HOSTS

    def is_primary_store(self, parts: SplitResult) -> bool:
        return _matches_host(_hostname(parts), self.primary_hosts)

    def is_secondary_store(self, parts: SplitResult) -> bool:
        netloc = parts.netloc.lower()
        return bool(netloc) and any(m and m.lower() in netloc for m in self.secondary_markers)

    def is_messaging(self, parts: SplitResult) -> bool:
        return _matches_host(_hostname(parts), self.messaging_hosts)

    def is_encrypted(self, parts: SplitResult) -> bool:
        return self.is_messaging(parts) and ENCRYPTED_SUFFIX in parts.path.lower()


def _matches_host(host: str, candidates: tuple[str, ...]) -> bool:
    if not host:
        return False
    for candidate in candidates:
        candidate = candidate.lower().strip()
        if candidate and (host == candidate or host.endswith("." + candidate)):
            return True
    return False


def parse_host_list(raw: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Parse a comma-separated setting, falling back to *default* when empty."""
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


DEFAULT_HOSTS = MediaHosts()
