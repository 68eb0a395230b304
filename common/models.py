# common/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from .geometry import Dimensions
from .sniff import SniffedKind


class JobStatus(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    ENCODING = "encoding"
    ACCEPTED = "accepted"
    RETRY_NEXT_QUALITY = "retry_next_quality"
    TIMED_OUT = "timed_out"
    ALL_LEVELS_FAILED = "all_levels_failed"
    PASSTHROUGH = "passthrough"
    FAILED = "failed"


class RecordStatus(str, Enum):
    """`processing_status` values of the persisted media record."""
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(frozen=True)
class Budget:
    max_wall_clock_ms: Optional[int]  # None on the server path: the host enforces timeouts
    max_memory_bytes: Optional[int]


@dataclass(frozen=True)
class ObjectRef:
    bucket: str
    path: str

    def __str__(self) -> str:
        return f"{self.bucket}/{self.path}"


@dataclass
class MediaJob:
    """
    One unit of transcoding work. Each pipeline stage records the decision it made.

    Fields:
        source_ref: object locator (server) or original filename (client).
        declared_mime_type: caller-supplied, untrusted.
        sniffed_kind: set from byte inspection by common.sniff.classify.
        dimensions: probed (or assumed) source geometry.
        target_dimensions: normalized output geometry, never larger than source.
        quality_attempted: ladder rungs tried, in order.
        budget: immutable per job.
        status: current pipeline state.
    """

    source_ref: Union[ObjectRef, str]
    declared_mime_type: str
    budget: Budget
    job_id: Optional[str] = None
    sniffed_kind: SniffedKind = SniffedKind.UNKNOWN
    dimensions: Optional[Dimensions] = None
    target_dimensions: Optional[Dimensions] = None
    quality_attempted: List[float] = field(default_factory=list)
    status: JobStatus = JobStatus.IDLE
    dimensions_assumed: bool = False
