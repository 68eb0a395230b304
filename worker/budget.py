# worker/budget.py
from __future__ import annotations
import time
from typing import Callable, Optional

from common.errors import ProcessingTimeout

Clock = Callable[[], float]  # monotonic seconds


class TimeBudget:
    """
    Wall-clock guard for one job. check() goes in front of every expensive step;
    once the budget is spent no further step is started.
    """

    def __init__(self, max_ms: Optional[int], clock: Clock = time.monotonic):
        self.max_ms = max_ms
        self._clock = clock
        self._started = clock()

    def elapsed_ms(self) -> float:
        return (self._clock() - self._started) * 1000.0

    def remaining_ms(self) -> Optional[float]:
        if self.max_ms is None:
            return None
        return max(self.max_ms - self.elapsed_ms(), 0.0)

    def exceeded(self) -> bool:
        return self.max_ms is not None and self.elapsed_ms() > self.max_ms

    def check(self, step: str = "") -> None:
        if self.exceeded():
            raise ProcessingTimeout(
                f"processing_timeout before {step or 'next step'} "
                f"({self.elapsed_ms():.0f}ms > {self.max_ms}ms)"
            )
