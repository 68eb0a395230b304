"""Dimension normalizer and decoded-memory estimate."""

from __future__ import annotations

import pytest

from common.geometry import Dimensions, estimate_decoded_bytes, normalize_dimensions, round_half_up

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("source", "cap"),
    [
        (Dimensions(6000, 4000), 4000),
        (Dimensions(4000, 6000), 4000),
        (Dimensions(5000, 5000), 4000),
        (Dimensions(3840, 2160), 1920),
        (Dimensions(1081, 1921), 1920),
        (Dimensions(7001, 33), 4000),
        (Dimensions(12345, 6789), 2048),
    ],
)
def test_long_edge_is_capped_and_aspect_kept(source: Dimensions, cap: int) -> None:
    out = normalize_dimensions(source, cap)

    assert max(out) == cap
    assert out.width <= source.width
    assert out.height <= source.height
    # within one pixel of rounding on the short edge
    assert abs(out.width / out.height - source.width / source.height) <= source.width / source.height / min(out)


def test_known_downscale() -> None:
    assert normalize_dimensions(Dimensions(6000, 4000), 4000) == Dimensions(4000, 2667)
    assert normalize_dimensions(Dimensions(3840, 2160), 1920) == Dimensions(1920, 1080)


def test_never_upscales() -> None:
    assert normalize_dimensions(Dimensions(800, 600), 4000) == Dimensions(800, 600)
    assert normalize_dimensions(Dimensions(4000, 10), 4000) == Dimensions(4000, 10)


def test_extreme_aspect_keeps_one_pixel() -> None:
    assert normalize_dimensions(Dimensions(10000, 1), 4000) == Dimensions(4000, 1)


def test_memory_estimate_is_rgba() -> None:
    assert estimate_decoded_bytes(Dimensions(5000, 5000)) == 100_000_000
    assert estimate_decoded_bytes(Dimensions(2000, 2000)) == 16_000_000


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert round_half_up(66.6) == 67
