# worker/worker.py
from __future__ import annotations
import argparse, logging, mimetypes, queue
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.config import LOG_LEVEL
from common.errors import ErrorKind
from .processor import BoundedImageProcessor, FileInput

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("worker")

mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("image/heif", ".heif")


def _file_from_message(file: Any) -> FileInput:
    if isinstance(file, FileInput):
        return file
    if isinstance(file, dict):
        return FileInput(
            name=file.get("name") or "upload",
            data=bytes(file["data"]),
            mime_type=file.get("type") or "",
        )
    raise TypeError(f"unsupported file payload: {type(file).__name__}")


def handle_message(message: Dict[str, Any], processor: Optional[BoundedImageProcessor] = None) -> Dict[str, Any]:
    """
    Process one `{id, file, options}` message and return `{id, **result}`.
    Never raises; malformed messages come back as failures.
    """
    msg_id = message.get("id") if isinstance(message, dict) else None
    try:
        file = _file_from_message(message["file"])
    except Exception as e:
        log.error("Malformed worker message id=%r: %s", msg_id, e)
        return {
            "id": msg_id,
            "success": False,
            "error": ErrorKind.UNKNOWN_PROCESSING_ERROR.value,
            "processingTime": 0,
        }

    processor = processor or BoundedImageProcessor()
    result = processor.process_file(file, message.get("options"))
    return {"id": msg_id, **result.to_message()}


def serve(inbox: queue.Queue, outbox: queue.Queue, processor: Optional[BoundedImageProcessor] = None) -> int:
    """
    Drain `inbox` one message at a time, posting each result to `outbox`,
    until a None sentinel arrives. Returns the number of messages handled.
    """
    processor = processor or BoundedImageProcessor()
    handled = 0
    while True:
        message = inbox.get()
        if message is None:
            break
        outbox.put(handle_message(message, processor))
        handled += 1
    return handled


def _convert_path(path: Path, processor: BoundedImageProcessor, out_dir: Optional[Path]) -> bool:
    mime, _ = mimetypes.guess_type(path.name)
    reply = handle_message({"id": str(path), "file": {"name": path.name, "type": mime, "data": path.read_bytes()}}, processor)
    if not reply["success"]:
        log.error("%s: %s (%.0fms)", path, reply["error"], reply["processingTime"])
        return False

    dest = (out_dir or path.parent) / reply["file"]["name"]
    if dest.resolve() == path.resolve():
        log.info("%s: already deliverable (%s)", path, reply["path"])
        return True
    dest.write_bytes(reply["file"]["data"])
    log.info("%s -> %s via %s (%s%% smaller, %.0fms)", path, dest, reply["path"],
             reply["reductionPercent"], reply["processingTime"])
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Convert images to delivery-ready WebP within a time budget.")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--out-dir", type=Path, default=None)
    args = parser.parse_args(argv)

    processor = BoundedImageProcessor()
    failures = sum(not _convert_path(p, processor, args.out_dir) for p in args.files)
    return 1 if failures else 0

if __name__ == "__main__":
    raise SystemExit(main())
