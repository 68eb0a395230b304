# api/jobs.py
"""
Server-side transcode orchestration.

One request = one job: mark the record processing, download the source into a
private temp dir, probe, encode a WebM rendition plus a poster, upload both and
write the terminal record state. The temp dir is removed on every exit path.
"""
from __future__ import annotations
import logging, re, shutil, tempfile, time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common.config import DEFAULT_CRF, TRANSCODE_TMP_ROOT
from common.geometry import round_half_up
from common.models import Budget, JobStatus, MediaJob, ObjectRef, RecordStatus
from common.results import (
    MediaArtifact,
    ResultMetrics,
    Strategy,
    TranscodeResult,
    TranscodeSuccess,
    failure_from_exception,
)
from common.sniff import HEAD_BYTES, classify

from .dal import MediaRecordStore, now_iso
from .storage import ObjectStorage
from .transcode import FfmpegVideoEncoder, MediaInfo

log = logging.getLogger("api")

WEBM_MIME = "video/webm"
POSTER_MIME = "image/jpeg"


@dataclass(frozen=True)
class TranscodeRequest:
    bucket: str
    path: str
    media_id: str
    crf: Optional[int] = None


@dataclass(frozen=True)
class JobOutcome:
    result: TranscodeResult
    info: Optional[MediaInfo] = None

    @property
    def processing_time_ms(self) -> int:
        return int(self.result.metrics.processing_time_ms)


def output_paths(src_path: str) -> tuple[str, str]:
    """raw/a/b.mov -> (processed/a/b.webm, processed/a/b.jpg)"""
    base = re.sub(r"\.[^./]+$", "", re.sub(r"^raw/", "processed/", src_path))
    return f"{base}.webm", f"{base}.jpg"


class TranscodeOrchestrator:
    def __init__(
        self,
        storage: ObjectStorage,
        records: MediaRecordStore,
        encoder: FfmpegVideoEncoder,
        *,
        default_crf: int = DEFAULT_CRF,
        tmp_root: str | Path = TRANSCODE_TMP_ROOT,
    ):
        self.storage = storage
        self.records = records
        self.encoder = encoder
        self.default_crf = default_crf
        self.tmp_root = Path(tmp_root)

    def run(self, req: TranscodeRequest) -> JobOutcome:
        t0 = time.monotonic()
        crf = self.default_crf if req.crf is None else int(req.crf)
        job = MediaJob(
            source_ref=ObjectRef(req.bucket, req.path),
            declared_mime_type="",
            budget=Budget(max_wall_clock_ms=None, max_memory_bytes=None),
            job_id=req.media_id,
        )

        def elapsed_ms() -> float:
            return (time.monotonic() - t0) * 1000.0

        original_size = 0
        work_dir: Optional[Path] = None

        log.info("Transcode job started mediaId=%s src=%s crf=%s", req.media_id, job.source_ref, crf)
        try:
            self.records.update(req.media_id, {"processing_status": RecordStatus.PROCESSING.value})

            self.tmp_root.mkdir(parents=True, exist_ok=True)
            work_dir = Path(tempfile.mkdtemp(prefix="transcode-", dir=self.tmp_root))
            log.info("Created working directory %s", work_dir)

            src_file = work_dir / "input"
            original_size = self.storage.download(req.bucket, req.path, src_file)
            log.info("Source file downloaded (%d bytes)", original_size)

            with src_file.open("rb") as fh:
                job.sniffed_kind = classify(fh.read(HEAD_BYTES), "", req.path)
            log.info("Source classified as %s", job.sniffed_kind.value)

            job.status = JobStatus.PROBING
            info = self.encoder.probe(src_file)
            job.dimensions = info.dimensions
            job.target_dimensions = self.encoder.target_for(info)

            job.status = JobStatus.ENCODING
            job.quality_attempted.append(crf)
            webm_file = self.encoder.encode_webm(src_file, work_dir / "output.webm", crf=crf, target=job.target_dimensions)
            poster_file = self.encoder.extract_poster(src_file, work_dir / "poster.jpg", duration=info.duration)
            webm_size = webm_file.stat().st_size

            webm_key, poster_key = output_paths(req.path)
            self.storage.upload(webm_file, req.bucket, webm_key, WEBM_MIME)
            self.storage.upload(poster_file, req.bucket, poster_key, POSTER_MIME)

            self.records.update(req.media_id, {
                "processing_status": RecordStatus.PROCESSED.value,
                "processed_path": webm_key,
                "thumbnail_path": poster_key,
                "width": info.width,
                "height": info.height,
                "duration_seconds": round_half_up(info.duration),
                "optimized_size_bytes": webm_size,
                "processed_at": now_iso(),
            })
            job.status = JobStatus.ACCEPTED

            result = TranscodeSuccess(
                strategy=Strategy.WEBM_SERVER,
                outputs=(
                    MediaArtifact(Path(webm_key).name, WEBM_MIME, webm_size, path=webm_key),
                    MediaArtifact(Path(poster_key).name, POSTER_MIME, poster_file.stat().st_size, path=poster_key),
                ),
                metrics=ResultMetrics(elapsed_ms(), original_size, webm_size),
                job=job,
                quality=crf,
            )
            log.info("Transcode job completed mediaId=%s in %dms compression=%s%% (%d -> %d bytes)",
                     req.media_id, int(elapsed_ms()), result.metrics.compression_ratio_percent,
                     original_size, webm_size)
            return JobOutcome(result, info)

        except Exception as e:
            job.status = JobStatus.FAILED
            log.exception("Transcode job failed mediaId=%s after %dms: %s", req.media_id, int(elapsed_ms()), e)
            try:
                self.records.update(req.media_id, {
                    "processing_status": RecordStatus.FAILED.value,
                    "processing_error": str(e),
                })
            except Exception as db_error:
                # must not mask the original failure
                log.error("Failed to update error status for mediaId=%s: %s", req.media_id, db_error)
            return JobOutcome(failure_from_exception(
                e,
                strategy=Strategy.WEBM_SERVER,
                job=job,
                processing_time_ms=elapsed_ms(),
                original_size=original_size,
            ))

        finally:
            if work_dir is not None:
                try:
                    shutil.rmtree(work_dir)
                    log.info("Cleaned up working directory %s", work_dir)
                except OSError as cleanup_error:
                    log.warning("Failed to cleanup working directory %s: %s", work_dir, cleanup_error)
