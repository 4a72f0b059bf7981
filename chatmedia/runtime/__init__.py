"""chatmedia runtime -- media resolution, delivery and relay server."""

__version__ = "0.3.0"
