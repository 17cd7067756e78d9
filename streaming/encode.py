import logging
import subprocess
from pathlib import Path

from .errors import EncodeError
from .ladder import bitrate_ladder
from .probe import VideoMetadata

logger = logging.getLogger(__name__)

SEGMENT_SECONDS = 2
GOP_FRAMES = 60

DASH_MANIFEST = "dash.mpd"
DASH_INIT_NAME = "init_$RepresentationID$.mp4"
DASH_MEDIA_NAME = "segment_$RepresentationID$_$Number$.m4s"

HLS_PLAYLIST = "hls.m3u8"
HLS_INIT_NAME = "init.mp4"
HLS_SEGMENT_PREFIX = "hls"
# %d is seeded from the wall clock via -hls_start_number_source datetime
HLS_SEGMENT_NAME = f"{HLS_SEGMENT_PREFIX}_%d.m4s"


def video_options(meta: VideoMetadata) -> list[str]:
    """H.264 options shared by both passes so the two ladders match."""
    high = bitrate_ladder(meta.width, meta.height).high
    return [
        "-map", "0:v:0",
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-crf", "23",
        "-maxrate", f"{high}K",
        "-bufsize", f"{high * 2}K",
        "-vf", f"scale={meta.width}:{meta.height}",
        "-g", str(GOP_FRAMES),
        "-keyint_min", str(GOP_FRAMES),
        "-sc_threshold", "0",
    ]


def audio_options(meta: VideoMetadata) -> list[str]:
    """Empty when the source has no audio; no silent track is synthesized."""
    if not meta.has_audio:
        return []
    return [
        "-map", "0:a:0",
        "-c:a", "aac",
        "-b:a", "128k",
        "-ac", "2",
        "-ar", "48000",
    ]


def dash_command(ffmpeg_path: str, source: Path, manifest: Path, meta: VideoMetadata) -> list[str]:
    return [
        ffmpeg_path,
        "-y",
        "-i", str(source),
        *video_options(meta),
        *audio_options(meta),
        "-f", "dash",
        "-seg_duration", str(SEGMENT_SECONDS),
        "-frag_duration", str(SEGMENT_SECONDS),
        "-ldash", "1",
        "-streaming", "1",
        "-use_template", "1",
        "-use_timeline", "0",
        "-single_file", "0",
        "-dash_segment_type", "mp4",
        "-init_seg_name", DASH_INIT_NAME,
        "-media_seg_name", DASH_MEDIA_NAME,
        "-strict", "experimental",
        str(manifest),
    ]


def hls_command(ffmpeg_path: str, source: Path, playlist: Path, meta: VideoMetadata) -> list[str]:
    return [
        ffmpeg_path,
        "-y",
        "-i", str(source),
        *video_options(meta),
        *audio_options(meta),
        "-f", "hls",
        "-hls_time", str(SEGMENT_SECONDS),
        "-hls_list_size", "0",
        "-hls_flags", "independent_segments",
        "-hls_segment_type", "fmp4",
        "-hls_fmp4_init_filename", HLS_INIT_NAME,
        "-hls_start_number_source", "datetime",
        "-hls_segment_filename", str(playlist.parent / HLS_SEGMENT_NAME),
        "-strict", "experimental",
        str(playlist),
    ]


def run_tool(cmd: list[str], *, timeout: float | None, error_cls, label: str, cwd=None):
    """Run an external tool to completion; map failures onto `error_cls` with captured stderr."""
    logger.debug("%s command: %s", label, " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.CalledProcessError as e:
        err = e.stderr.decode("utf-8", errors="ignore") if e.stderr else ""
        raise error_cls(f"{label} exited with code {e.returncode}", stderr=err[-4000:])
    except subprocess.TimeoutExpired:
        raise error_cls(f"{label} timed out after {timeout}s")
    except OSError as e:
        raise error_cls(f"Could not start {label}: {e}")


def _encode(cmd, expected: Path, *, timeout, label: str, cwd=None) -> Path:
    run_tool(cmd, timeout=timeout, error_cls=EncodeError, label=label, cwd=cwd)
    if not expected.is_file():
        raise EncodeError(f"{label} finished but {expected.name} is missing")
    logger.info("%s stream created: %s", label, expected)
    return expected


def encode_dash(source: Path, out_dir: Path, meta: VideoMetadata, *, ffmpeg_path="ffmpeg", timeout=None, cwd=None) -> Path:
    manifest = out_dir / DASH_MANIFEST
    cmd = dash_command(ffmpeg_path, source, manifest, meta)
    return _encode(cmd, manifest, timeout=timeout, label="DASH", cwd=cwd)


def encode_hls(source: Path, out_dir: Path, meta: VideoMetadata, *, ffmpeg_path="ffmpeg", timeout=None, cwd=None) -> Path:
    playlist = out_dir / HLS_PLAYLIST
    cmd = hls_command(ffmpeg_path, source, playlist, meta)
    return _encode(cmd, playlist, timeout=timeout, label="HLS", cwd=cwd)
