"""Shared pytest fixtures for chatmedia.runtime tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatmedia.runtime.media.hosts import MediaHosts

_CONFIG_KEYS = (
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
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in _CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)
    env_path = tmp_path / ".env"
    monkeypatch.setenv("DOTENV_PATH", str(env_path))
    return env_path


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_env: Path):
    from chatmedia.runtime.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def env_path(_isolate_env: Path) -> Path:
    return _isolate_env


@pytest.fixture()
def store_hosts() -> MediaHosts:
    """Hosts where ``store.example`` is the secondary object store."""
    return MediaHosts(secondary_markers=("store.example",))
