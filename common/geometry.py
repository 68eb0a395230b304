# common/geometry.py
from __future__ import annotations
import math
from typing import NamedTuple

BYTES_PER_PIXEL = 4  # decoded RGBA


class Dimensions(NamedTuple):
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_dimensions(source: Dimensions, max_edge: int) -> Dimensions:
    """
    Scale `source` so its long edge is at most `max_edge`, keeping aspect ratio.
    Never upscales; each side stays at least 1px.
    """
    width, height = source
    long_edge = max(width, height)
    if long_edge <= max_edge or long_edge <= 0:
        return Dimensions(width, height)

    scale = max_edge / long_edge
    return Dimensions(
        max(1, min(width, round_half_up(width * scale))),
        max(1, min(height, round_half_up(height * scale))),
    )


def estimate_decoded_bytes(dims: Dimensions, bytes_per_pixel: int = BYTES_PER_PIXEL) -> int:
    return dims.width * dims.height * bytes_per_pixel
