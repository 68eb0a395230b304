# worker/encoder.py
"""
Pillow backend for the bounded processor: probe, decode+resize, encode WebP.

HEIC/HEIF decoding comes from pillow-heif, registered as a Pillow opener on import.
Library exceptions are translated into the typed taxonomy here, at the boundary.
"""
from __future__ import annotations
import io
from typing import Protocol

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from common.errors import CanvasLimit, CorruptContainer, DecodeFailure, OutOfMemory, UnsupportedMedia
from common.geometry import Dimensions

register_heif_opener()

WEBP_METHOD = 4  # compression effort (0-6)


class ImageBackend(Protocol):
    output_mime_type: str
    output_extension: str

    def probe(self, data: bytes) -> Dimensions: ...

    def decode(self, data: bytes, target: Dimensions): ...

    def encode(self, frame, quality: float) -> bytes: ...


class PillowWebpBackend:
    output_mime_type = "image/webp"
    output_extension = ".webp"

    def probe(self, data: bytes) -> Dimensions:
        # Image.open only parses the header; pixels are not decoded here
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
        return Dimensions(width, height)

    def decode(self, data: bytes, target: Dimensions) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
        except UnidentifiedImageError as e:
            raise UnsupportedMedia(f"decode_unsupported: {e}") from e
        except Image.DecompressionBombError as e:
            raise CanvasLimit(f"canvas_limit: {e}") from e

        try:
            img.load()
        except Image.DecompressionBombError as e:
            raise CanvasLimit(f"canvas_limit: {e}") from e
        except MemoryError as e:
            raise OutOfMemory("wasm_oom while decoding") from e
        except OSError as e:
            raise CorruptContainer(f"container_corrupt: {e}") from e
        except (ValueError, SyntaxError) as e:
            raise DecodeFailure(f"decode_failure: {e}") from e

        if img.mode == "P":
            img = img.convert("RGBA")
        elif img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")

        if tuple(target) != img.size:
            try:
                img = img.resize(tuple(target), Image.LANCZOS)
            except MemoryError as e:
                raise OutOfMemory("wasm_oom while resizing") from e
            except ValueError as e:
                raise CanvasLimit(f"canvas_limit: {e}") from e
        return img

    def encode(self, frame: Image.Image, quality: float) -> bytes:
        buf = io.BytesIO()
        try:
            frame.save(buf, format="WEBP", quality=int(round(quality * 100)), method=WEBP_METHOD)
        except MemoryError as e:
            raise OutOfMemory("wasm_oom while encoding") from e
        except (OSError, ValueError) as e:
            raise CanvasLimit(f"canvas_limit: {e}") from e
        return buf.getvalue()
