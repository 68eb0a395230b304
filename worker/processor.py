# worker/processor.py
from __future__ import annotations
import logging
import time
from collections import abc
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from common import config
from common.errors import BudgetExceeded, UnsupportedMedia
from common.geometry import Dimensions, estimate_decoded_bytes, normalize_dimensions
from common.models import Budget, JobStatus, MediaJob
from common.results import (
    MediaArtifact,
    ResultMetrics,
    Strategy,
    TranscodeResult,
    TranscodeSuccess,
    failure_from_exception,
)
from common.sniff import HEAD_BYTES, SniffedKind, classify, jpeg_filename

from .budget import Clock, TimeBudget
from .encoder import ImageBackend, PillowWebpBackend
from .ladder import QualityLadder

log = logging.getLogger("worker")


@dataclass(frozen=True)
class FileInput:
    name: str
    data: bytes
    mime_type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ProcessingOptions:
    max_wall_clock_ms: int = config.CLIENT_MAX_PROCESSING_MS
    max_memory_bytes: int = config.CLIENT_MAX_MEMORY_BYTES
    max_dimension: int = config.CLIENT_MAX_DIMENSION
    quality_ladder: Sequence[float] = field(default=config.QUALITY_LADDER)
    min_reduction_percent: int = config.CLIENT_MIN_REDUCTION_PERCENT
    fast_accept_ms: int = config.CLIENT_FAST_ACCEPT_MS
    fallback_dimensions: Dimensions = Dimensions(*config.FALLBACK_DIMENSIONS)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "ProcessingOptions":
        """Per-call overrides. Unknown keys are ignored; badly typed values raise ValueError."""
        if not options:
            return cls()
        if not isinstance(options, abc.Mapping):
            raise ValueError(f"processing options must be a mapping, got {type(options).__name__}")
        known = {k: v for k, v in options.items() if k in cls.__dataclass_fields__}
        unknown = set(options) - set(known)
        if unknown:
            log.warning("Ignoring unknown processing options: %s", sorted(unknown, key=str))

        for key in _INT_OPTIONS & set(known):
            known[key] = _non_negative_int(key, known[key])
        if "quality_ladder" in known:
            known["quality_ladder"] = _quality_ladder(known["quality_ladder"])
        if "fallback_dimensions" in known:
            known["fallback_dimensions"] = _dimensions(known["fallback_dimensions"])
        return replace(cls(), **known)


_INT_OPTIONS = {"max_wall_clock_ms", "max_memory_bytes", "max_dimension", "min_reduction_percent", "fast_accept_ms"}


def _non_negative_int(key: str, value: Any) -> int:
    # bool is an int subclass; reject it along with floats like 1.5
    if (isinstance(value, bool) or not isinstance(value, (int, float))
            or (isinstance(value, float) and not value.is_integer()) or value < 0):
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return int(value)


def _quality_ladder(value: Any) -> Tuple[float, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, abc.Sequence) or not value:
        raise ValueError(f"quality_ladder must be a non-empty list of numbers, got {value!r}")
    rungs = []
    for q in value:
        if isinstance(q, bool) or not isinstance(q, (int, float)) or not 0 < q <= 1:
            raise ValueError(f"quality_ladder rungs must be numbers in (0, 1], got {q!r}")
        rungs.append(float(q))
    return tuple(rungs)


def _dimensions(value: Any) -> Dimensions:
    if isinstance(value, (str, bytes)) or not isinstance(value, abc.Sequence) or len(value) != 2:
        raise ValueError(f"fallback_dimensions must be [width, height], got {value!r}")
    width, height = (_non_negative_int("fallback_dimensions", v) for v in value)
    if not width or not height:
        raise ValueError(f"fallback_dimensions must be positive, got {value!r}")
    return Dimensions(width, height)


class BoundedImageProcessor:
    """
    Converts one uploaded image into a WebP rendition inside a strict time and
    memory budget. Never raises: every outcome comes back as a TranscodeResult.
    """

    def __init__(self, backend: Optional[ImageBackend] = None, clock: Clock = time.monotonic):
        self.backend = backend or PillowWebpBackend()
        self.clock = clock

    def process_file(self, file: FileInput, options: Optional[Mapping[str, Any]] = None) -> TranscodeResult:
        # the clock starts before option parsing so a rejected call still reports its time
        budget = TimeBudget(None, self.clock)
        job = MediaJob(source_ref=file.name, declared_mime_type=file.mime_type, budget=Budget(None, None))

        try:
            opts = ProcessingOptions.from_mapping(options)
            budget.max_ms = opts.max_wall_clock_ms
            job.budget = Budget(opts.max_wall_clock_ms, opts.max_memory_bytes)

            # Cheapest exit first: a HEIF-labelled file that is really a JPEG
            job.sniffed_kind = classify(file.data[:HEAD_BYTES], file.mime_type, file.name)
            if job.sniffed_kind is SniffedKind.JPEG_IN_HEIF:
                return self._passthrough(file, job, budget)
            if job.sniffed_kind is not SniffedKind.IMAGE:
                raise UnsupportedMedia(f"decode_unsupported: {file.name} sniffed as {job.sniffed_kind.value}")

            job.status = JobStatus.PROBING
            job.dimensions = self._probe(file.data, budget, opts, job)
            estimate = estimate_decoded_bytes(job.dimensions)
            if estimate > opts.max_memory_bytes:
                job.status = JobStatus.FAILED
                raise BudgetExceeded(
                    f"client_budget_exceeded: {job.dimensions} needs ~{estimate} bytes "
                    f"(limit {opts.max_memory_bytes})"
                )

            job.target_dimensions = normalize_dimensions(job.dimensions, opts.max_dimension)

            budget.check("decode")
            frame = self.backend.decode(file.data, job.target_dimensions)

            ladder = QualityLadder(
                opts.quality_ladder,
                min_reduction_percent=opts.min_reduction_percent,
                fast_accept_ms=opts.fast_accept_ms,
            )
            outcome = ladder.run(frame, self.backend.encode, original_size=file.size, budget=budget, job=job)

            accepted = outcome.accepted
            name = str(PurePosixPath(file.name).with_suffix(self.backend.output_extension))
            artifact = MediaArtifact(name, self.backend.output_mime_type, accepted.size, data=accepted.output)
            log.info("Converted %s %s->%s q=%.2f reduction=%s%% in %.0fms",
                     file.name, job.dimensions, job.target_dimensions, accepted.quality,
                     accepted.reduction_percent, budget.elapsed_ms())
            return TranscodeSuccess(
                strategy=Strategy.WEBP_LOCAL,
                outputs=(artifact,),
                metrics=ResultMetrics(budget.elapsed_ms(), file.size, accepted.size),
                job=job,
                quality=accepted.quality,
            )

        except Exception as e:
            if job.status not in (JobStatus.TIMED_OUT, JobStatus.ALL_LEVELS_FAILED):
                job.status = JobStatus.FAILED
            result = failure_from_exception(
                e,
                strategy=Strategy.WEBP_LOCAL,
                job=job,
                processing_time_ms=budget.elapsed_ms(),
                original_size=file.size,
            )
            log.warning("Processing %s failed: %s (%s)", file.name, result.error_kind.value, e)
            return result

    def _passthrough(self, file: FileInput, job: MediaJob, budget: TimeBudget) -> TranscodeSuccess:
        job.status = JobStatus.PASSTHROUGH
        artifact = MediaArtifact(jpeg_filename(file.name), "image/jpeg", file.size, data=file.data)
        log.info("JPEG payload inside HEIF container: %s relabelled as %s", file.name, artifact.name)
        return TranscodeSuccess(
            strategy=Strategy.JPEG_PASSTHROUGH,
            outputs=(artifact,),
            metrics=ResultMetrics(budget.elapsed_ms(), file.size, file.size),
            job=job,
        )

    def _probe(self, data: bytes, budget: TimeBudget, opts: ProcessingOptions, job: MediaJob) -> Dimensions:
        """Probe source geometry, falling back to a conservative default when the
        probe fails or does not finish within the remaining budget."""
        remaining = budget.remaining_ms()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe")
        try:
            future = pool.submit(self.backend.probe, data)
            return future.result(timeout=remaining / 1000.0 if remaining is not None else None)
        except FutureTimeout:
            log.warning("Dimension probe exceeded %.0fms; assuming %s", remaining, opts.fallback_dimensions)
        except Exception as e:
            log.warning("Dimension probe failed (%s); assuming %s", e, opts.fallback_dimensions)
        finally:
            # a stuck probe is abandoned, never waited on
            pool.shutdown(wait=False)
        job.dimensions_assumed = True
        return opts.fallback_dimensions
