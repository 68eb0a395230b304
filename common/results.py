# common/results.py
"""
Uniform outcome of a transcoding job, shared by the client and server paths.

A result is either a TranscodeSuccess or a TranscodeFailure; callers switch on
the type rather than on optional fields. Both always carry metrics.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ErrorKind, categorize
from .geometry import round_half_up
from .models import MediaJob


class Strategy(str, Enum):
    JPEG_PASSTHROUGH = "jpeg_passthrough"
    WEBP_LOCAL = "webp_local"
    WEBM_SERVER = "webm_server"


def compression_ratio_percent(original_size: int, output_size: int) -> int:
    """round((1 - output/original) * 100); negative when the output grew."""
    if original_size <= 0:
        return 0
    return round_half_up((1 - output_size / original_size) * 100)


@dataclass(frozen=True)
class MediaArtifact:
    name: str
    mime_type: str
    size: int
    data: Optional[bytes] = None   # in-memory rendition (client path)
    path: Optional[str] = None     # object storage key (server path)

    def to_message(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {"name": self.name, "type": self.mime_type, "size": self.size}
        if self.data is not None:
            msg["data"] = self.data
        if self.path is not None:
            msg["path"] = self.path
        return msg


@dataclass(frozen=True)
class ResultMetrics:
    processing_time_ms: float
    original_size_bytes: int
    output_size_bytes: Optional[int]  # None when no rendition was produced

    @property
    def compression_ratio_percent(self) -> Optional[int]:
        if self.output_size_bytes is None:
            return None
        return compression_ratio_percent(self.original_size_bytes, self.output_size_bytes)


@dataclass(frozen=True)
class TranscodeSuccess:
    strategy: Strategy
    outputs: Tuple[MediaArtifact, ...]
    metrics: ResultMetrics
    job: MediaJob
    quality: Optional[float] = None

    success = True

    @property
    def primary(self) -> MediaArtifact:
        return self.outputs[0]

    def to_message(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {
            "success": True,
            "path": self.strategy.value,
            "file": self.primary.to_message(),
            "processingTime": self.metrics.processing_time_ms,
            "reductionPercent": self.metrics.compression_ratio_percent,
        }
        if self.quality is not None:
            msg["quality"] = self.quality
        return msg


@dataclass(frozen=True)
class TranscodeFailure:
    strategy: Strategy
    error_kind: ErrorKind
    message: str
    metrics: ResultMetrics
    job: MediaJob

    success = False

    def to_message(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.error_kind.value,
            "processingTime": self.metrics.processing_time_ms,
        }


TranscodeResult = Union[TranscodeSuccess, TranscodeFailure]


def failure_from_exception(
    exc: BaseException,
    *,
    strategy: Strategy,
    job: MediaJob,
    processing_time_ms: float,
    original_size: int,
) -> TranscodeFailure:
    return TranscodeFailure(
        strategy=strategy,
        error_kind=categorize(exc),
        message=str(exc),
        metrics=ResultMetrics(processing_time_ms, original_size, None),
        job=job,
    )
