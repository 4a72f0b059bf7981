"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import os
from collections.abc import Mapping

from ..media.hosts import (
    MESSAGING_MEDIA_HOSTS,
    PRIMARY_STORE_HOSTS,
    PRIMARY_STORE_MEDIA_MARKER,
    SECONDARY_STORE_MARKERS,
    MediaHosts,
    parse_host_list,
)
from ..media.kinds import TransportClass
from ..media.memo import DEFAULT_MEMO_SIZE, RelayMemo
from ..media.relay import DEFAULT_INSTANCE, ProxyRoute, build_routes
from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

SECRET_ENV_KEYS: frozenset[str] = frozenset({
    "DECRYPT_GATEWAY_KEY",
})

_TRUTHY = ("1", "true", "yes", "on")


class Settings:

    def __init__(self) -> None:
        self.env = EnvFile(os.getenv("DOTENV_PATH") or ".env")
        self._memo: RelayMemo | None = None
        self.reload()

    def reload(self) -> None:
        e = self._read

        self.relay_host: str = e("RELAY_HOST") or "0.0.0.0"
        self.relay_port: int = int(e("RELAY_PORT") or "8080")
        self.relay_prefix: str = e("RELAY_PREFIX").rstrip("/")
        self.public_base_url: str = e("PUBLIC_BASE_URL") or f"http://localhost:{self.relay_port}"

        self.primary_store_hosts: tuple[str, ...] = parse_host_list(
            e("PRIMARY_STORE_HOSTS"), PRIMARY_STORE_HOSTS,
        )
        self.primary_store_media_marker: str = (
            e("PRIMARY_STORE_MEDIA_MARKER") or PRIMARY_STORE_MEDIA_MARKER
        )
        self.secondary_store_markers: tuple[str, ...] = parse_host_list(
            e("SECONDARY_STORE_MARKERS"), SECONDARY_STORE_MARKERS,
        )
        self.messaging_media_hosts: tuple[str, ...] = parse_host_list(
            e("MESSAGING_MEDIA_HOSTS"), MESSAGING_MEDIA_HOSTS,
        )

        self.object_store_url: str = (e("OBJECT_STORE_URL") or "http://localhost:9000").rstrip("/")
        self.object_store_bucket: str = e("OBJECT_STORE_BUCKET") or "chat-media"

        self.decrypt_gateway_url: str = (e("DECRYPT_GATEWAY_URL") or "http://localhost:8081").rstrip("/")
        self.decrypt_gateway_key: str = e("DECRYPT_GATEWAY_KEY")
        self.default_messaging_instance: str = e("DEFAULT_MESSAGING_INSTANCE") or DEFAULT_INSTANCE

        self.relay_timeout_seconds: float = float(e("RELAY_TIMEOUT_SECONDS") or "30")
        self.probe_timeout_ms: int = int(e("PROBE_TIMEOUT_MS") or "5000")

        self.relay_memo_enabled: bool = e("RELAY_MEMO_ENABLED").lower() in _TRUTHY
        self.relay_memo_size: int = int(e("RELAY_MEMO_SIZE") or str(DEFAULT_MEMO_SIZE))

        self.log_level: str = (e("LOG_LEVEL") or "INFO").upper()
        self._memo = None

    @property
    def media_hosts(self) -> MediaHosts:
        return MediaHosts(
            primary_hosts=self.primary_store_hosts,
            media_marker=self.primary_store_media_marker,
            secondary_markers=self.secondary_store_markers,
            messaging_hosts=self.messaging_media_hosts,
        )

    @property
    def relay_routes(self) -> Mapping[TransportClass, ProxyRoute]:
        return build_routes(self.relay_prefix)

    @property
    def relay_memo(self) -> RelayMemo | None:
        """Process-wide relay memo, or None when disabled."""
        if not self.relay_memo_enabled:
            return None
        if self._memo is None:
            self._memo = RelayMemo(self.relay_memo_size)
        return self._memo

    def redacted(self) -> dict[str, str]:
        """Every configured key with secret values masked, for diagnostics."""
        values = {**{k: v for k, v in os.environ.items() if k in _KNOWN_KEYS}, **self.env.read_all()}
        return {
            k: ("****" if k in SECRET_ENV_KEYS and v else v)
            for k, v in sorted(values.items())
            if k in _KNOWN_KEYS
        }

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")


_KNOWN_KEYS: frozenset[str] = frozenset({
    "RELAY_HOST",
    "RELAY_PORT",
    "RELAY_PREFIX",
    "PUBLIC_BASE_URL",
    "PRIMARY_STORE_HOSTS",
    "PRIMARY_STORE_MEDIA_MARKER",
    "SECONDARY_STORE_MARKERS",
    "MESSAGING_MEDIA_HOSTS",
    "OBJECT_STORE_URL",
    "OBJECT_STORE_BUCKET",
    "DECRYPT_GATEWAY_URL",
    "DECRYPT_GATEWAY_KEY",
    "DEFAULT_MESSAGING_INSTANCE",
    "RELAY_TIMEOUT_SECONDS",
    "PROBE_TIMEOUT_MS",
    "RELAY_MEMO_ENABLED",
    "RELAY_MEMO_SIZE",
    "LOG_LEVEL",
})


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
