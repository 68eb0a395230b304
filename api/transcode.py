# api/transcode.py
from __future__ import annotations
import json, logging, subprocess, time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from common.config import FFMPEG_BIN, FFPROBE_BIN, MAX_VIDEO_EDGE, POSTER_OFFSET_SEC
from common.errors import EncoderError, ProbeError
from common.geometry import Dimensions, normalize_dimensions

log = logging.getLogger("api")


@dataclass(frozen=True)
class MediaInfo:
    width: int
    height: int
    duration: float
    bitrate: Optional[int] = None
    codec: Optional[str] = None
    rotation: int = 0  # display rotation; width/height are already post-rotation

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


def _even(n: int) -> int:
    """yuv420p needs even sides."""
    return max(2, n - n % 2)


def _rotation(stream: dict) -> int:
    """Display rotation in degrees (0/90/180/270) from the display matrix or the legacy rotate tag."""
    for side in stream.get("side_data_list") or []:
        if "rotation" in side:
            return int(float(side["rotation"])) % 360
    rotate = (stream.get("tags") or {}).get("rotate")
    return int(float(rotate)) % 360 if rotate else 0


def vp9_args(crf: int, target: Dimensions) -> List[str]:
    return [
        "-c:v", "libvpx-vp9",
        "-b:v", "0",
        "-crf", str(crf),
        "-row-mt", "1",
        "-g", "240",
        "-pix_fmt", "yuv420p",
        "-vf", f"scale={_even(target.width)}:{_even(target.height)}:flags=lanczos",
        "-c:a", "libopus",
        "-b:a", "96k",
        "-ac", "2",
        "-ar", "48000",
    ]


class FfmpegVideoEncoder:
    """
    Probe, WebM/VP9 rendition and poster frame, each one ffmpeg/ffprobe subprocess.
    """

    def __init__(self, *, ffmpeg: str = FFMPEG_BIN, ffprobe: str = FFPROBE_BIN,
                 max_edge: int = MAX_VIDEO_EDGE, poster_offset: float = POSTER_OFFSET_SEC):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.max_edge = max_edge
        self.poster_offset = poster_offset

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        if proc.returncode != 0:
            raise EncoderError(f"{Path(cmd[0]).name} failed ({proc.returncode}): {proc.stderr.strip()}")
        return proc

    def probe(self, in_path: str | Path) -> MediaInfo:
        cmd = [self.ffprobe, "-v", "error", "-print_format", "json", "-show_format", "-show_streams", str(in_path)]
        try:
            proc = self._run(cmd)
            meta = json.loads(proc.stdout or "{}")
        except (EncoderError, ValueError) as e:
            raise ProbeError(f"Unable to probe media: {e}") from e

        video = next((s for s in meta.get("streams", []) if s.get("codec_type") == "video"), None)
        if video is None:
            raise ProbeError("No video stream found")

        fmt = meta.get("format", {})
        bit_rate = fmt.get("bit_rate")
        width, height = int(video.get("width") or 0), int(video.get("height") or 0)
        rotation = _rotation(video)
        # ffmpeg autorotates before -vf, so the scale target must use displayed geometry
        if rotation % 180 == 90:
            width, height = height, width
        return MediaInfo(
            width=width,
            height=height,
            duration=float(fmt.get("duration") or 0),
            bitrate=int(bit_rate) if bit_rate else None,
            codec=video.get("codec_name"),
            rotation=rotation,
        )

    def target_for(self, info: MediaInfo) -> Dimensions:
        return normalize_dimensions(info.dimensions, self.max_edge)

    def encode_webm(self, in_path: str | Path, out_path: str | Path, *, crf: int, target: Dimensions) -> Path:
        """
        Single-pass constant-quality VP9/Opus encode of in_path into out_path.
        Writes EXACTLY to out_path.
        """
        out_path = Path(out_path)
        cmd = [self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error", "-i", str(in_path),
               *vp9_args(crf, target), str(out_path)]
        log.debug("ffmpeg command: %s", " ".join(cmd))
        t0 = time.monotonic()
        self._run(cmd)
        log.info("WebM transcode completed in %.2fs", time.monotonic() - t0)
        return out_path

    def extract_poster(self, in_path: str | Path, out_path: str | Path, *, duration: float) -> Path:
        out_path = Path(out_path)
        # clips shorter than the offset are sampled from the first frame
        offset = self.poster_offset if duration > self.poster_offset else 0
        cmd = [self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error", "-ss", f"{offset:g}", "-i", str(in_path),
               "-frames:v", "1", "-q:v", "2", "-f", "image2", str(out_path)]
        self._run(cmd)
        log.info("Poster generation completed (offset=%gs)", offset)
        return out_path
