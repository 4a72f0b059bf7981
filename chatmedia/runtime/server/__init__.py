"""Server module -- aiohttp relay application and handlers."""

from __future__ import annotations

from .app import create_app, main

__all__ = ["create_app", "main"]
