# worker/ladder.py
"""
Quality ladder: greedy encode attempts at descending quality under a hard deadline.

    Idle -> Encoding(i) -> Accepted
                        -> RetryNextQuality -> Encoding(i+1) ...
                        -> TimedOut           (checked before every rung)
                        -> AllLevelsFailed    (rungs exhausted)

A rung is accepted when its compression is good enough OR the job is still fast
enough to afford a smaller win. A failed rung advances to the next one, unless
it raised a ProcessingError marked non-recoverable, which aborts the ladder.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from common.errors import ProcessingError, ProcessingTimeout, QualityLadderExhausted
from common.models import JobStatus, MediaJob
from common.results import compression_ratio_percent

from .budget import TimeBudget

log = logging.getLogger("worker")

Encode = Callable[[Any, float], bytes]


@dataclass
class QualityLevel:
    quality: float
    output: Optional[bytes] = None
    size: Optional[int] = None
    elapsed_ms: Optional[float] = None
    reduction_percent: Optional[int] = None
    error: Optional[BaseException] = None


@dataclass
class LadderOutcome:
    accepted: QualityLevel
    levels: List[QualityLevel] = field(default_factory=list)


class QualityLadder:
    def __init__(
        self,
        qualities: Sequence[float],
        *,
        min_reduction_percent: int,
        fast_accept_ms: float,
    ):
        if not qualities:
            raise ValueError("quality ladder needs at least one rung")
        self.qualities = tuple(qualities)
        self.min_reduction_percent = min_reduction_percent
        self.fast_accept_ms = fast_accept_ms

    def _acceptable(self, level: QualityLevel, budget: TimeBudget) -> bool:
        if level.reduction_percent is not None and level.reduction_percent >= self.min_reduction_percent:
            return True
        return budget.elapsed_ms() < self.fast_accept_ms

    def run(self, frame: Any, encode: Encode, *, original_size: int, budget: TimeBudget, job: MediaJob) -> LadderOutcome:
        levels: List[QualityLevel] = []

        for index, quality in enumerate(self.qualities):
            if budget.exceeded():
                job.status = JobStatus.TIMED_OUT
                raise ProcessingTimeout(
                    f"processing_timeout before quality rung {index} ({budget.elapsed_ms():.0f}ms elapsed)"
                )

            job.status = JobStatus.ENCODING
            job.quality_attempted.append(quality)
            level = QualityLevel(quality)
            levels.append(level)
            started = budget.elapsed_ms()

            try:
                level.output = encode(frame, quality)
            except ProcessingError as e:
                level.error = e
                level.elapsed_ms = budget.elapsed_ms() - started
                if not e.recoverable:
                    job.status = JobStatus.FAILED
                    raise
                log.debug("Rung q=%.2f failed (%s); trying next", quality, e.kind.value)
                job.status = JobStatus.RETRY_NEXT_QUALITY
                continue
            except Exception as e:
                # untyped backend failures only cost this rung
                level.error = e
                level.elapsed_ms = budget.elapsed_ms() - started
                log.warning("Rung q=%.2f failed (%s: %s); trying next", quality, type(e).__name__, e)
                job.status = JobStatus.RETRY_NEXT_QUALITY
                continue

            level.elapsed_ms = budget.elapsed_ms() - started
            level.size = len(level.output)
            level.reduction_percent = compression_ratio_percent(original_size, level.size)

            if self._acceptable(level, budget):
                log.debug("Rung q=%.2f accepted (reduction=%s%%, elapsed=%.0fms)",
                          quality, level.reduction_percent, budget.elapsed_ms())
                job.status = JobStatus.ACCEPTED
                return LadderOutcome(accepted=level, levels=levels)

            log.debug("Rung q=%.2f rejected (reduction=%s%%, elapsed=%.0fms)",
                      quality, level.reduction_percent, budget.elapsed_ms())
            job.status = JobStatus.RETRY_NEXT_QUALITY

        job.status = JobStatus.ALL_LEVELS_FAILED
        raise QualityLadderExhausted(f"all_quality_levels_failed after {len(levels)} rung(s)")
