"""Guess file types from content signatures and filenames.

Attachment URLs often end in an opaque hash (GitHub ``user-attachments``) or a
generic name (GitLab pastes are called ``Image``). Destinations need a
plausible extension to serve the right content type, so the downloaded bytes
are inspected instead.
"""

from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath
from typing import Final

_SVG_PROBE_BYTES: Final[int] = 256

_HEIF_BRANDS: Final[frozenset[bytes]] = frozenset({b"heic", b"heix", b"hevc", b"hevx", b"heim", b"heis", b"mif1", b"msf1"})
_AVIF_BRANDS: Final[frozenset[bytes]] = frozenset({b"avif", b"avis"})
_QUICKTIME_BRAND: Final[bytes] = b"qt  "

_CONTENT_TYPES: Final[dict[str, str]] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".avif": "image/avif",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".txt": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".ts": "application/typescript",
}


def _detect_iso_media(data: bytes) -> str:
    """Classify ISO base media files (MP4 family) by the major brand of the ftyp box."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return ""
    brand = data[8:12]
    if brand in _HEIF_BRANDS:
        return ".heic"
    if brand in _AVIF_BRANDS:
        return ".avif"
    if brand == _QUICKTIME_BRAND:
        return ".mov"
    return ".mp4"


def _looks_like_svg(data: bytes) -> bool:
    head = data[:_SVG_PROBE_BYTES].decode("utf-8", errors="ignore").lower()
    return "<svg" in head or ("<?xml" in head and "svg" in head)


def detect_extension(data: bytes) -> str:  # noqa: PLR0911 - one return per signature
    """Return the file extension (with leading dot) matching the content signature.

    Returns an empty string when the content matches no known signature;
    callers then fall back to a generic filename.
    """
    if not data:
        return ""

    if data.startswith(b"\xff\xd8\xff"):
        return ".jpg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return ".png"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return ".gif"
    if data.startswith(b"RIFF") and len(data) >= 12:
        if data[8:12] == b"WEBP":
            return ".webp"
        if data[8:12] == b"AVI ":
            return ".avi"
    if data.startswith(b"%PDF-"):
        return ".pdf"
    if len(data) >= 4 and data[:2] == b"PK" and data[2] in (3, 5, 7) and data[3] in (4, 6, 8):
        return ".zip"
    if data.startswith(b"\x1a\x45\xdf\xa3"):
        return ".webm"
    if data.startswith((b"II*\x00", b"MM\x00*")):
        return ".tiff"
    if data.startswith(b"\x00\x00\x01\x00"):
        return ".ico"

    iso_media = _detect_iso_media(data)
    if iso_media:
        return iso_media

    if _looks_like_svg(data):
        return ".svg"

    # Two-byte signature, checked last to limit false positives
    if data.startswith(b"BM"):
        return ".bmp"

    return ""


def content_type_for(filename: str) -> str:
    """Return the MIME type to announce for ``filename``."""
    ext = PurePosixPath(filename).suffix.lower()
    mime_type, _ = mimetypes.guess_type(f"file{ext}") if ext else (None, None)
    if mime_type:
        return mime_type.split(";", 1)[0].strip()
    return _CONTENT_TYPES.get(ext, "application/octet-stream")
