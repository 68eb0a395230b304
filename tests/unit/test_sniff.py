"""Format classifier: content sniffing beats declared MIME types."""

from __future__ import annotations

import pytest

from common.sniff import SniffedKind, classify, is_jpeg_in_heif, jpeg_filename

pytestmark = pytest.mark.unit

HEIC_HEADER = b"\x00\x00\x00\x18ftypheic\x00\x00\x00\x00mif1heic"


def test_heic_container_with_jpeg_marker_is_passthrough_candidate() -> None:
    data = HEIC_HEADER + b"\x00" * 100 + b"\xff\xd8\xff\xe0" + b"\x00" * 2000

    assert classify(data, "image/heic", "IMG_0001.HEIC") is SniffedKind.JPEG_IN_HEIF


def test_plain_jpeg_named_heic_is_passthrough_candidate() -> None:
    data = b"\xff\xd8\xff\xe1" + b"\x00" * 4096

    assert classify(data, "application/octet-stream", "IMG_0002.heic") is SniffedKind.JPEG_IN_HEIF
    assert classify(data, "image/heif") is SniffedKind.JPEG_IN_HEIF


def test_marker_beyond_first_kilobyte_is_ignored() -> None:
    data = HEIC_HEADER + b"\x00" * 1100 + b"\xff\xd8"

    assert not is_jpeg_in_heif(data)
    assert classify(data, "image/heic", "IMG.heic") is SniffedKind.IMAGE


def test_genuine_jpeg_is_not_relabelled() -> None:
    data = b"\xff\xd8\xff\xe0" + b"\x00" * 64

    assert classify(data, "image/jpeg", "photo.jpg") is SniffedKind.IMAGE


@pytest.mark.parametrize(
    ("head", "expected"),
    [
        (b"\x89PNG\r\n\x1a\n" + b"\x00" * 16, SniffedKind.IMAGE),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", SniffedKind.IMAGE),
        (b"RIFF\x00\x00\x00\x00AVI LIST", SniffedKind.VIDEO),
        (b"\x1a\x45\xdf\xa3" + b"\x00" * 16, SniffedKind.VIDEO),
        (b"\x00\x00\x00\x20ftypisom\x00\x00\x02\x00", SniffedKind.VIDEO),
        (b"\x00\x00\x00\x14ftypqt  \x00\x00\x00\x00", SniffedKind.VIDEO),
        (b"\x00\x00\x00\x1cftypavif\x00\x00\x00\x00", SniffedKind.IMAGE),
        (b"\x00\x00\x00\x08wide\x00\x00\x00\x00", SniffedKind.VIDEO),
    ],
)
def test_signatures_win_over_declared_mime(head: bytes, expected: SniffedKind) -> None:
    assert classify(head, "text/plain") is expected


def test_declared_mime_is_the_last_resort() -> None:
    unknown = b"\x01\x02\x03\x04" * 8

    assert classify(unknown, "video/mp4") is SniffedKind.VIDEO
    assert classify(unknown, "image/x-custom") is SniffedKind.IMAGE
    assert classify(unknown, "application/zip") is SniffedKind.UNKNOWN
    assert classify(b"", "") is SniffedKind.UNKNOWN


def test_jpeg_filename_swaps_heif_extensions_only() -> None:
    assert jpeg_filename("IMG_0001.HEIC") == "IMG_0001.jpg"
    assert jpeg_filename("holiday.heif") == "holiday.jpg"
    assert jpeg_filename("photo.png") == "photo.png"
