"""Media kind and transport class enums."""

from __future__ import annotations

import enum


class MediaKind(enum.Enum):
    image = "image"
    video = "video"
    audio = "audio"
    document = "document"
    sticker = "sticker"
    text = "text"


class TransportClass(enum.Enum):
    inline = "inline"
    primary_store = "primary-object-store"
    secondary_store = "secondary-object-store"
    encrypted_source = "encrypted-relay-source"
    generic_http = "generic-http"
    invalid = "invalid"
