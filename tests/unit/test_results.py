"""Result shapes and the compression-ratio invariant."""

from __future__ import annotations

import pytest

from common.errors import BudgetExceeded, ErrorKind
from common.models import Budget, MediaJob
from common.results import (
    MediaArtifact,
    ResultMetrics,
    Strategy,
    TranscodeSuccess,
    compression_ratio_percent,
    failure_from_exception,
)

pytestmark = pytest.mark.unit


def _job() -> MediaJob:
    return MediaJob(source_ref="a.heic", declared_mime_type="image/heic", budget=Budget(1500, 1024))


@pytest.mark.parametrize(
    ("original", "output", "expected"),
    [
        (1000, 400, 60),
        (1000, 333, 67),
        (1000, 1000, 0),
        (1000, 1500, -50),
        (3, 4, -33),
    ],
)
def test_compression_ratio_formula(original: int, output: int, expected: int) -> None:
    assert compression_ratio_percent(original, output) == expected


def test_compression_ratio_for_empty_source_is_zero() -> None:
    assert compression_ratio_percent(0, 10) == 0


def test_success_message_shape() -> None:
    artifact = MediaArtifact("a.webp", "image/webp", 400, data=b"x" * 400)
    result = TranscodeSuccess(
        strategy=Strategy.WEBP_LOCAL,
        outputs=(artifact,),
        metrics=ResultMetrics(120.5, 1000, 400),
        job=_job(),
        quality=0.76,
    )

    msg = result.to_message()

    assert msg == {
        "success": True,
        "path": "webp_local",
        "file": {"name": "a.webp", "type": "image/webp", "size": 400, "data": b"x" * 400},
        "processingTime": 120.5,
        "reductionPercent": 60,
        "quality": 0.76,
    }


def test_failure_message_shape_and_metrics() -> None:
    result = failure_from_exception(
        BudgetExceeded(),
        strategy=Strategy.WEBP_LOCAL,
        job=_job(),
        processing_time_ms=3.0,
        original_size=1000,
    )

    assert result.success is False
    assert result.error_kind is ErrorKind.CLIENT_BUDGET_EXCEEDED
    assert result.metrics.output_size_bytes is None
    assert result.metrics.compression_ratio_percent is None
    assert result.to_message() == {
        "success": False,
        "error": "client_budget_exceeded",
        "processingTime": 3.0,
    }
