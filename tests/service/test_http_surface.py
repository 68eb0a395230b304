"""HTTP contract of the transcoder service."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.jobs import TranscodeOrchestrator
from api.main import app, get_orchestrator
from common.results import compression_ratio_percent
from tests.mocks.fakes import FakeVideoEncoder, InMemoryRecords, InMemoryStorage

pytestmark = pytest.mark.service

SOURCE_KEY = "raw/creator-9/clip.mp4"


@pytest.fixture()
def records() -> InMemoryRecords:
    return InMemoryRecords("media-1")


@pytest.fixture()
def encoder() -> FakeVideoEncoder:
    return FakeVideoEncoder(webm_size=2_500, poster_size=120)


@pytest.fixture()
def work_root(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture()
def client(records, encoder, work_root):
    storage = InMemoryStorage({("media", SOURCE_KEY): b"\x00" * 10_000})
    orchestrator = TranscodeOrchestrator(storage, records, encoder, default_crf=30, tmp_root=work_root)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["version"] == "1.0.0"
    assert body["timestamp"].endswith("Z")
    assert body["uptime"] >= 0
    assert isinstance(body["memory"], dict)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"bucket": "media", "path": SOURCE_KEY},
        {"bucket": "", "path": SOURCE_KEY, "mediaId": "media-1"},
        {"path": SOURCE_KEY, "mediaId": "media-1"},
    ],
)
def test_missing_parameters(client: TestClient, payload: dict, records: InMemoryRecords) -> None:
    response = client.post("/jobs/transcode", json=payload)

    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "Missing required parameters: bucket, path, mediaId"}
    assert records.updates == []


def test_non_json_body_is_a_client_error(client: TestClient) -> None:
    response = client.post("/jobs/transcode", content=b"bucket=media", headers={"content-type": "text/plain"})

    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_transcode_success(client: TestClient, records: InMemoryRecords, encoder: FakeVideoEncoder, work_root: Path) -> None:
    response = client.post("/jobs/transcode", json={"bucket": "media", "path": SOURCE_KEY, "mediaId": "media-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["mediaId"] == "media-1"
    assert isinstance(body["processingTime"], int)
    assert body["result"] == {
        "webmPath": "processed/creator-9/clip.webm",
        "posterPath": "processed/creator-9/clip.jpg",
        "compressionRatio": compression_ratio_percent(10_000, 2_500),
        "originalSize": 10_000,
        "webmSize": 2_500,
        "dimensions": "1920x1080",
        "duration": 10.0,
    }
    assert body["result"]["compressionRatio"] == 75
    assert encoder.encode_calls[0]["crf"] == 30

    row = records.get("media-1")
    assert row["processing_status"] == "processed"
    assert row["processed_path"].endswith(".webm")
    assert row["thumbnail_path"].endswith(".jpg")
    assert not list(work_root.glob("transcode-*"))


def test_crf_is_passed_through(client: TestClient, encoder: FakeVideoEncoder) -> None:
    response = client.post(
        "/jobs/transcode", json={"bucket": "media", "path": SOURCE_KEY, "mediaId": "media-1", "crf": 24}
    )

    assert response.status_code == 200
    assert encoder.encode_calls[0]["crf"] == 24


@pytest.mark.parametrize("crf", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_crf_is_a_client_error(client: TestClient, encoder: FakeVideoEncoder, records: InMemoryRecords, crf: str) -> None:
    body = f'{{"bucket": "media", "path": "{SOURCE_KEY}", "mediaId": "media-1", "crf": {crf}}}'

    response = client.post("/jobs/transcode", content=body, headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "Missing required parameters: bucket, path, mediaId"}
    assert encoder.encode_calls == []
    assert records.updates == []


def test_missing_source_object(client: TestClient, records: InMemoryRecords, work_root: Path) -> None:
    response = client.post(
        "/jobs/transcode", json={"bucket": "media", "path": "raw/creator-9/gone.mp4", "mediaId": "media-1"}
    )

    assert response.status_code == 500
    body = response.json()
    assert body["ok"] is False
    assert body["mediaId"] == "media-1"
    assert isinstance(body["processingTime"], int)
    assert "Object not found" in body["error"]

    row = records.get("media-1")
    assert row["processing_status"] == "failed"
    assert row["processing_error"] == body["error"]
    assert not list(work_root.glob("transcode-*"))


@pytest.mark.parametrize(("method", "url"), [("get", "/nope"), ("post", "/jobs"), ("get", "/jobs/transcode")])
def test_unknown_route(client: TestClient, method: str, url: str) -> None:
    response = getattr(client, method)(url)

    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": "Route not found"}
