"""Shared pytest fixtures for chatmedia.cli tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in ("SECONDARY_STORE_MARKERS", "DEFAULT_MESSAGING_INSTANCE", "RELAY_PREFIX", "LOG_LEVEL"):
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
