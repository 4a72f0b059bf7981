"""Server route handlers."""

from __future__ import annotations

from .inspect_routes import InspectRoutes
from .relay_routes import RelayRoutes

__all__ = ["InspectRoutes", "RelayRoutes"]
