# api/main.py
from __future__ import annotations
import logging, os, resource, time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

import uvicorn
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import assert_core_env, LOG_LEVEL, PORT, SERVICE_VERSION
from .dal import MediaRecordStore
from .jobs import TranscodeOrchestrator, TranscodeRequest
from .storage import ObjectStorage
from .transcode import FfmpegVideoEncoder

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("api")

MISSING_PARAMS = "Missing required parameters: bucket, path, mediaId"
_STARTED = time.monotonic()

app = FastAPI(title="Media Transcoder")

@app.on_event("startup")
def _startup():
    assert_core_env()
    log.info("Video transcoder service started pid=%s", os.getpid())

@lru_cache(maxsize=1)
def get_orchestrator() -> TranscodeOrchestrator:
    return TranscodeOrchestrator(ObjectStorage(), MediaRecordStore(), FfmpegVideoEncoder())

# ----------------- Middleware / error mapping -----------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    log.info("Request received %s %s ua=%r length=%s", request.method, request.url.path,
             request.headers.get("user-agent"), request.headers.get("content-length"))
    return await call_next(request)

@app.exception_handler(RequestValidationError)
async def _invalid_request(request: Request, exc: RequestValidationError):
    log.warning("Invalid request parameters: %s", exc.errors())
    return JSONResponse(status_code=400, content={"ok": False, "error": MISSING_PARAMS})

@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code in (404, 405):
        log.warning("Route not found %s %s", request.method, request.url.path)
        return JSONResponse(status_code=404, content={"ok": False, "error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": str(exc.detail)})

@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    log.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"ok": False, "error": "Internal server error"})

# ----------------- Health -----------------
@app.get("/health")
def health():
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "memory": {"maxRss": usage.ru_maxrss, "userTime": usage.ru_utime, "systemTime": usage.ru_stime},
        "version": SERVICE_VERSION,
    }

# ----------------- Transcode -----------------
class TranscodeReq(BaseModel):
    bucket: Optional[str] = None
    path: Optional[str] = None
    mediaId: Optional[str] = None
    crf: Optional[float] = Field(None, allow_inf_nan=False, description="VP9 CRF; service default when omitted")

@app.post("/jobs/transcode")
def transcode(req: TranscodeReq, orchestrator: TranscodeOrchestrator = Depends(get_orchestrator)):
    """
    Runs one transcode job to completion and reports the outcome.
    """
    if not req.bucket or not req.path or not req.mediaId:
        log.warning("Invalid request parameters bucket=%r path=%r mediaId=%r", req.bucket, req.path, req.mediaId)
        return JSONResponse(status_code=400, content={"ok": False, "error": MISSING_PARAMS})

    crf = None if req.crf is None else int(round(req.crf))
    outcome = orchestrator.run(TranscodeRequest(req.bucket, req.path, req.mediaId, crf))
    result = outcome.result

    if not result.success:
        return JSONResponse(status_code=500, content={
            "ok": False,
            "mediaId": req.mediaId,
            "processingTime": outcome.processing_time_ms,
            "error": result.message,
        })

    info = outcome.info
    webm, poster = result.outputs
    return {
        "ok": True,
        "mediaId": req.mediaId,
        "processingTime": outcome.processing_time_ms,
        "result": {
            "webmPath": webm.path,
            "posterPath": poster.path,
            "compressionRatio": result.metrics.compression_ratio_percent,
            "originalSize": result.metrics.original_size_bytes,
            "webmSize": result.metrics.output_size_bytes,
            "dimensions": f"{info.width}x{info.height}",
            "duration": info.duration,
        },
    }

# ----------------- Process entry -----------------
class _ImmediateExitServer(uvicorn.Server):
    """Exits on SIGTERM/SIGINT without draining in-flight jobs."""

    def handle_exit(self, sig, frame):
        log.info("Signal %s received, shutting down", sig)
        logging.shutdown()
        os._exit(0)

def main() -> None:
    config = uvicorn.Config(app, host="0.0.0.0", port=PORT, log_level=LOG_LEVEL.lower())
    _ImmediateExitServer(config).run()

if __name__ == "__main__":
    main()
