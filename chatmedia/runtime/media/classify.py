"""Content classification -- descriptor to MediaKind, plus MIME helpers."""

from __future__ import annotations

import posixpath
from urllib.parse import SplitResult, unquote

from .hosts import DEFAULT_HOSTS, ENCRYPTED_SUFFIX, MediaHosts, split_url
from .kinds import MediaKind

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "svg", "bmp", "tiff"})
VIDEO_EXTENSIONS = frozenset({"mp4", "avi", "mov", "wmv", "flv", "webm", "mkv", "3gp"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "aac", "m4a", "flac", "opus"})
DOCUMENT_EXTENSIONS = frozenset({
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "rtf", "csv",
})
STICKER_EXTENSIONS = frozenset({"webp"})

EXTENSION_TO_MIME: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".ico": "image/x-icon",
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".3gp": "video/3gpp",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".wma": "audio/x-ms-wma",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
    ".csv": "text/csv",
    ".zip": "application/zip",
}

# Bracketed labels are matched whole (case-insensitive); emoji anywhere.
_PLACEHOLDERS: tuple[tuple[MediaKind, frozenset[str], str], ...] = (
    (MediaKind.image, frozenset({"[image]", "[imagem]"}), "\U0001f4f7"),
    (MediaKind.video, frozenset({"[video]", "[vídeo]"}), "\U0001f3ac"),
    (MediaKind.sticker, frozenset({"[sticker]"}), "\U0001f3ad"),
    (MediaKind.audio, frozenset({"[audio]", "[áudio]"}), "\U0001f3b5"),
    (MediaKind.document, frozenset({"[document]", "[documento]"}), "\U0001f4c4"),
)

UNLABELED_PAYLOAD_MIN_LENGTH = 100


def classify(descriptor: object, hosts: MediaHosts = DEFAULT_HOSTS) -> MediaKind:
    """Classify an attachment descriptor.  Never raises; falls back to ``text``."""
    if not isinstance(descriptor, str) or not descriptor.strip():
        return MediaKind.text
    content = descriptor.strip()

    if content.lower().startswith("data:"):
        tagged = _classify_data_url(content)
        if tagged is not None:
            return tagged

    if "://" in content:
        parts = split_url(content)
        if parts is not None and parts.netloc:
            if hosts.is_primary_store(parts) or hosts.is_secondary_store(parts):
                return _classify_store_path(parts)
            if hosts.is_messaging(parts):
                return _classify_extension(_extension(parts), default=MediaKind.image)
            if parts.scheme.lower() in ("http", "https"):
                return _classify_extension(_extension(parts), default=MediaKind.document)

    placeholder = placeholder_kind(content)
    if placeholder is not None:
        return placeholder

    if is_unlabeled_payload(content):
        return MediaKind.image

    return MediaKind.text


def placeholder_kind(content: str) -> MediaKind | None:
    """Return the kind announced by a textual placeholder, if any."""
    label = content.strip().lower()
    for kind, labels, emoji in _PLACEHOLDERS:
        if label in labels or emoji in content:
            return kind
    return None


def is_unlabeled_payload(content: str) -> bool:
    """A long token with no whitespace and no scheme -- raw base64 image data."""
    return (
        len(content) > UNLABELED_PAYLOAD_MIN_LENGTH
        and not any(ch.isspace() for ch in content)
        and "://" not in content
        and not content.lower().startswith("data:")
    )


def data_url_media_type(content: str) -> str:
    """Return the lower-cased media type tag of a ``data:`` URL (may be ``""``)."""
    header = content[len("data:"):].split(",", 1)[0]
    return header.split(";", 1)[0].strip().lower()


def _classify_data_url(content: str) -> MediaKind | None:
    tag = data_url_media_type(content)
    if tag == "image/webp":
        return MediaKind.sticker
    family = tag.split("/", 1)[0]
    if family == "image":
        return MediaKind.image
    if family == "video":
        return MediaKind.video
    if family == "audio":
        return MediaKind.audio
    if tag:
        return MediaKind.document
    return None


def _decoded_path(parts: SplitResult) -> str:
    path = parts.path.replace("%252F", "%2F").replace("%252f", "%2f")
    return unquote(path)


def _extension(parts: SplitResult) -> str:
    name = posixpath.basename(_decoded_path(parts))
    _, dot, ext = name.rpartition(".")
    return ext.lower() if dot else ""


def _classify_store_path(parts: SplitResult) -> MediaKind:
    segments = {s.lower() for s in _decoded_path(parts).split("/") if s}
    ext = _extension(parts)
    if "videos" in segments or ext in VIDEO_EXTENSIONS:
        return MediaKind.video
    if "stickers" in segments or ext in STICKER_EXTENSIONS:
        return MediaKind.sticker
    if "audios" in segments or ext in AUDIO_EXTENSIONS:
        return MediaKind.audio
    if "documents" in segments or ext in DOCUMENT_EXTENSIONS:
        return MediaKind.document
    return MediaKind.image


def _classify_extension(ext: str, *, default: MediaKind) -> MediaKind:
    if not ext or "." + ext == ENCRYPTED_SUFFIX:
        return default
    if ext in STICKER_EXTENSIONS:
        return MediaKind.sticker
    if ext in IMAGE_EXTENSIONS:
        return MediaKind.image
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.video
    if ext in AUDIO_EXTENSIONS:
        return MediaKind.audio
    if ext in DOCUMENT_EXTENSIONS:
        return MediaKind.document
    return default


# -- MIME helpers -----------------------------------------------------------


def content_type_for(name: str) -> str:
    """Content type for an object name, by extension."""
    ext = posixpath.splitext(name.lower())[1]
    return EXTENSION_TO_MIME.get(ext, "application/octet-stream")


def sniff_content_type(data: bytes) -> str | None:
    """Detect a content type from magic numbers, or ``None``."""
    if len(data) < 12:
        return None
    head = data[:12]
    if head[4:8] == b"ftyp":
        brand = head[8:12]
        if brand == b"M4A ":
            return "audio/mp4"
        return "video/mp4"
    if head.startswith(b"\x1a\x45\xdf\xa3"):
        return "video/webm"
    if head.startswith(b"RIFF"):
        if head[8:12] == b"AVI ":
            return "video/x-msvideo"
        if head[8:12] == b"WAVE":
            return "audio/wav"
        if head[8:12] == b"WEBP":
            return "image/webp"
        return None
    if head.startswith(b"OggS"):
        return "audio/ogg"
    if head.startswith(b"ID3") or (head[0] == 0xFF and head[1] & 0xE0 == 0xE0):
        return "audio/mpeg"
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith(b"\x89PNG"):
        return "image/png"
    if head.startswith(b"GIF8"):
        return "image/gif"
    if head.startswith(b"%PDF"):
        return "application/pdf"
    if head.startswith(b"PK\x03\x04"):
        return "application/zip"
    return None


def looks_like_audio(data: bytes) -> bool:
    """True when *data* starts like an OGG, MP3, WAV or M4A/AAC stream."""
    if len(data) < 12:
        return False
    if data.startswith(b"OggS") or data.startswith(b"ID3"):
        return True
    if data[0] == 0xFF and data[1] & 0xE0 == 0xE0:
        return True
    if data.startswith(b"RIFF") and data[8:12] == b"WAVE":
        return True
    return data[4:8] == b"ftyp"
