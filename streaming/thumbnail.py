import logging
from pathlib import Path

from .encode import run_tool
from .errors import ThumbnailError

logger = logging.getLogger(__name__)

THUMBNAIL_NAME = "thumbnail.jpg"
THUMBNAIL_SIZE = (640, 360)
THUMBNAIL_POSITION = 0.10


def thumbnail_command(ffmpeg_path: str, source: Path, dest: Path, duration: float) -> list[str]:
    at = max(0.0, duration * THUMBNAIL_POSITION)
    w, h = THUMBNAIL_SIZE
    return [
        ffmpeg_path,
        "-y",
        "-ss", f"{at:.3f}",
        "-i", str(source),
        "-frames:v", "1",
        "-vf", f"scale={w}:{h}",
        "-q:v", "2",
        str(dest),
    ]


def extract_thumbnail(source: Path, out_dir: Path, duration: float, *, ffmpeg_path="ffmpeg", timeout=None) -> Path:
    """Grab one 640x360 JPEG at 10% of the duration."""
    dest = out_dir / THUMBNAIL_NAME
    cmd = thumbnail_command(ffmpeg_path, source, dest, duration)
    run_tool(cmd, timeout=timeout, error_cls=ThumbnailError, label="Thumbnail")
    if not dest.is_file() or dest.stat().st_size == 0:
        raise ThumbnailError(f"Thumbnail was not written: {dest}")
    logger.info("Thumbnail created: %s", dest)
    return dest
