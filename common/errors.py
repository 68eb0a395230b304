# common/errors.py
"""
Closed error taxonomy shared by the client processor and the server transcoder.

Every stage raises a typed ProcessingError whose kind is fixed at the raise
site; categorize() is the single place where arbitrary exceptions are folded
into the caller-visible vocabulary.
"""
from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    PROCESSING_TIMEOUT = "processing_timeout"
    CANVAS_LIMIT = "canvas_limit"
    DECODE_FAILURE = "decode_failure"
    CLIENT_BUDGET_EXCEEDED = "client_budget_exceeded"
    WASM_OOM = "wasm_oom"
    CONTAINER_CORRUPT = "container_corrupt"
    DECODE_UNSUPPORTED = "decode_unsupported"
    ALL_QUALITY_LEVELS_FAILED = "all_quality_levels_failed"
    UNKNOWN_PROCESSING_ERROR = "unknown_processing_error"


class ProcessingError(Exception):
    """Base for every failure a pipeline stage raises on purpose."""

    kind: ErrorKind = ErrorKind.UNKNOWN_PROCESSING_ERROR
    # recoverable errors let the quality ladder move on to the next rung
    recoverable: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind.value)


class ProcessingTimeout(ProcessingError):
    kind = ErrorKind.PROCESSING_TIMEOUT


class BudgetExceeded(ProcessingError):
    kind = ErrorKind.CLIENT_BUDGET_EXCEEDED


class CanvasLimit(ProcessingError):
    kind = ErrorKind.CANVAS_LIMIT
    recoverable = True


class OutOfMemory(ProcessingError):
    kind = ErrorKind.WASM_OOM
    recoverable = True


class DecodeFailure(ProcessingError):
    kind = ErrorKind.DECODE_FAILURE


class CorruptContainer(ProcessingError):
    kind = ErrorKind.CONTAINER_CORRUPT


class UnsupportedMedia(ProcessingError):
    kind = ErrorKind.DECODE_UNSUPPORTED


class QualityLadderExhausted(ProcessingError):
    kind = ErrorKind.ALL_QUALITY_LEVELS_FAILED


# ---- Server-side failures ----

class StorageError(ProcessingError):
    """Object storage download/upload failed."""


class RecordUpdateError(ProcessingError):
    """The persisted media record could not be written."""


class ProbeError(UnsupportedMedia):
    """ffprobe could not find a decodable video stream."""


class EncoderError(DecodeFailure):
    """ffmpeg exited non-zero."""


def categorize(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ProcessingError):
        return exc.kind
    if isinstance(exc, MemoryError):
        return ErrorKind.WASM_OOM
    return ErrorKind.UNKNOWN_PROCESSING_ERROR
