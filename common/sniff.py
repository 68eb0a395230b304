# common/sniff.py
"""Content sniffing: decide what a file really is from its leading bytes."""
from __future__ import annotations
from enum import Enum
from pathlib import PurePosixPath

HEAD_BYTES = 1024
JPEG_SOI = b"\xff\xd8"

HEIF_MIME_TYPES = {"image/heic", "image/heif", "image/heic-sequence", "image/heif-sequence"}
HEIF_EXTENSIONS = {".heic", ".heif"}
HEIF_BRANDS = {"heic", "heix", "heim", "heis", "hevc", "hevx", "mif1", "msf1"}

# Unambiguous image signatures. RIFF and ftyp containers are resolved in classify().
IMAGE_MAGIC = (
    b"\xff\xd8\xff",                       # JPEG
    b"\x89\x50\x4e\x47\x0d\x0a\x1a\x0a",   # PNG
    b"\x47\x49\x46\x38",                   # GIF87a / GIF89a
    b"\x49\x49\x2a\x00",                   # TIFF little-endian
    b"\x4d\x4d\x00\x2a",                   # TIFF big-endian
    b"\x42\x4d",                           # BMP
)
EBML_MAGIC = b"\x1a\x45\xdf\xa3"  # Matroska / WebM


class SniffedKind(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    JPEG_IN_HEIF = "jpeg-in-heif-container"
    UNKNOWN = "unknown"


def _ftyp_brand(head: bytes) -> str | None:
    if len(head) >= 12 and head[4:8] == b"ftyp":
        return head[8:12].decode("ascii", errors="ignore").lower()
    return None


def _declared_heif(declared_mime: str, filename: str | None) -> bool:
    if (declared_mime or "").lower() in HEIF_MIME_TYPES:
        return True
    return bool(filename) and PurePosixPath(filename).suffix.lower() in HEIF_EXTENSIONS


def is_jpeg_in_heif(head: bytes) -> bool:
    return JPEG_SOI in head[:HEAD_BYTES]


def classify(head: bytes, declared_mime: str = "", filename: str | None = None) -> SniffedKind:
    """
    Classify a file from (at least) its first HEAD_BYTES bytes.

    A file typed or named as HEIF whose leading bytes carry a JPEG start-of-image
    marker is reported as JPEG_IN_HEIF so the caller can relabel it instead of
    decoding it. The declared MIME type is only consulted when no signature matches.
    """
    head = head[:HEAD_BYTES]
    brand = _ftyp_brand(head)

    if (_declared_heif(declared_mime, filename) or brand in HEIF_BRANDS) and is_jpeg_in_heif(head):
        return SniffedKind.JPEG_IN_HEIF

    if head.startswith(IMAGE_MAGIC):
        return SniffedKind.IMAGE
    if head.startswith(b"RIFF") and len(head) >= 12:
        if head[8:12] in (b"WEBP", b"WEBX"):
            return SniffedKind.IMAGE
        if head[8:12] == b"AVI ":
            return SniffedKind.VIDEO
    if head.startswith(EBML_MAGIC):
        return SniffedKind.VIDEO
    if brand is not None:
        if brand in HEIF_BRANDS or brand in ("avif", "avis"):
            return SniffedKind.IMAGE
        return SniffedKind.VIDEO
    # Older QuickTime without ftyp
    if len(head) >= 8 and head[4:8] in (b"moov", b"mdat", b"wide", b"free", b"pnot"):
        return SniffedKind.VIDEO

    mime = (declared_mime or "").lower()
    if mime.startswith("image/"):
        return SniffedKind.IMAGE
    if mime.startswith("video/"):
        return SniffedKind.VIDEO
    return SniffedKind.UNKNOWN


def jpeg_filename(filename: str) -> str:
    path = PurePosixPath(filename)
    if path.suffix.lower() in HEIF_EXTENSIONS:
        return str(path.with_suffix(".jpg"))
    return filename
