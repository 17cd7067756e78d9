import json
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict, dataclass
from fractions import Fraction
from pathlib import Path

import ffmpeg

from .errors import ProbeError

logger = logging.getLogger(__name__)

DEFAULT_BITRATE_BPS = 5_000_000
DEFAULT_FRAME_RATE = Fraction(30, 1)


@dataclass(frozen=True)
class VideoMetadata:
    duration_seconds: float
    width: int
    height: int
    bitrate_bps: int
    has_audio: bool
    frame_rate: Fraction

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    def as_dict(self) -> dict:
        data = asdict(self)
        data["frame_rate"] = f"{self.frame_rate.numerator}/{self.frame_rate.denominator}"
        data["frame_rate_fps"] = round(float(self.frame_rate), 3)
        return data


def parse_frame_rate(value: str) -> Fraction:
    """
    Parse an ffprobe rate string ("30000/1001", "25/1", "25") into a Fraction.
    Raises ValueError for non-numeric parts or a zero denominator.
    """
    text = str(value).strip()
    num, sep, den = text.partition("/")
    if not sep:
        den = "1"
    num, den = num.strip(), den.strip()
    if not num.isdigit() or not den.isdigit():
        raise ValueError(f"Not a frame-rate fraction: {value!r}")
    if int(den) == 0:
        raise ValueError(f"Zero denominator in frame rate: {value!r}")
    return Fraction(int(num), int(den))


def _stream_frame_rate(stream: dict) -> Fraction:
    # r_frame_rate is "0/0" on some containers; avg_frame_rate is the next best source
    for key in ("r_frame_rate", "avg_frame_rate"):
        raw = stream.get(key)
        if not raw:
            continue
        try:
            rate = parse_frame_rate(raw)
        except ValueError:
            if raw.strip() in ("0/0", "N/A"):
                continue
            raise ProbeError(f"Unparseable {key}: {raw!r}")
        if rate > 0:
            return rate
    return DEFAULT_FRAME_RATE


def metadata_from_probe(data: dict) -> VideoMetadata:
    """Build VideoMetadata from ffprobe JSON (-show_format -show_streams)."""
    streams = data.get("streams") or []
    fmt = data.get("format") or {}

    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
    if video is None:
        raise ProbeError("No video stream found")

    try:
        width = int(video.get("width") or 0)
        height = int(video.get("height") or 0)
    except (TypeError, ValueError):
        raise ProbeError(f"Bad frame size: {video.get('width')!r}x{video.get('height')!r}")
    if width < 1 or height < 1:
        raise ProbeError(f"Bad frame size: {width}x{height}")

    try:
        duration = float(fmt.get("duration") or video.get("duration") or 0.0)
    except (TypeError, ValueError):
        duration = 0.0
    if duration <= 0:
        logger.warning("Probe reported no duration; thumbnails will be taken at t=0")
        duration = 0.0

    try:
        bitrate = int(fmt.get("bit_rate") or 0) or DEFAULT_BITRATE_BPS
    except (TypeError, ValueError):
        bitrate = DEFAULT_BITRATE_BPS

    return VideoMetadata(
        duration_seconds=duration,
        width=width,
        height=height,
        bitrate_bps=bitrate,
        has_audio=audio is not None,
        frame_rate=_stream_frame_rate(video),
    )


def probe_fallback(path: Path, ffprobe_path: str = "ffprobe", timeout: float | None = None) -> dict:
    """Shell out to ffprobe directly and return its parsed JSON."""
    cmd = [
        ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    try:
        res = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ProbeError(f"ffprobe timed out after {timeout}s on {path}")
    except OSError as e:
        raise ProbeError(f"Could not run ffprobe: {e}")

    stderr = res.stderr.decode("utf-8", errors="ignore") if res.stderr else ""
    if res.returncode != 0:
        raise ProbeError(f"ffprobe exited with code {res.returncode}", stderr=stderr)
    try:
        return json.loads(res.stdout)
    except ValueError as e:
        raise ProbeError(f"ffprobe output is not JSON: {e}", stderr=stderr)


def _primary_probe(path: Path, ffprobe_path: str, timeout: float | None) -> dict:
    """
    ffmpeg.probe waits on ffprobe with no deadline, so the wait is bounded
    from a worker thread. A timed-out ffprobe is left to exit on its own.
    """
    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(ffmpeg.probe, str(path), cmd=ffprobe_path)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        raise ProbeError(f"ffmpeg.probe timed out after {timeout}s on {path}")
    finally:
        pool.shutdown(wait=False)


def probe(path, *, ffprobe_path: str = "ffprobe", timeout: float | None = None) -> VideoMetadata:
    """
    Probe a local media file. Tries ffmpeg-python first; on any error there,
    including a timeout, falls back to invoking ffprobe directly. Both paths
    feed metadata_from_probe.
    """
    path = Path(path)
    if not path.is_file():
        raise ProbeError(f"Not a local file: {path}")

    try:
        data = _primary_probe(path, ffprobe_path, timeout)
    except Exception as e:
        err = getattr(e, "stderr", None)
        if isinstance(err, bytes):
            err = err.decode("utf-8", errors="ignore")
        logger.warning("Primary probe failed for %s (%s); using ffprobe fallback", path, err or e)
        data = probe_fallback(path, ffprobe_path, timeout=timeout)

    meta = metadata_from_probe(data)
    logger.info(
        "Probed %s: %s, %.2fs, audio=%s, %s fps",
        path.name, meta.resolution, meta.duration_seconds, meta.has_audio, meta.frame_rate,
    )
    return meta
