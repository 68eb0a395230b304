from __future__ import annotations

import os

import pytest

os.environ.setdefault("AWS_REGION", "ap-southeast-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("MEDIA_TABLE", "simple_media")

from tests.mocks.fakes import FakeClock  # noqa: E402


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
