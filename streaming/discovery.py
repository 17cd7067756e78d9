"""
Find what the encoder actually wrote.

ffmpeg does not reliably keep every segment next to the manifest: DASH
segments can land in subdirectories it creates, or in the process working
directory. Both passes emit `.m4s` and `init*.mp4`, so naming is the only
thing that tells the formats apart: HLS media segments carry the `hls`
prefix and its init segment is exactly `init.mp4`; DASH uses
`init_<rep>.mp4` and `segment_<rep>_<n>.m4s`.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

from .encode import HLS_INIT_NAME, HLS_SEGMENT_PREFIX
from .thumbnail import THUMBNAIL_NAME

logger = logging.getLogger(__name__)

DASH = "dash"
HLS = "hls"
THUMBNAIL = "thumbnail"

MANIFEST = "manifest"
INIT_SEGMENT = "init-segment"
MEDIA_SEGMENT = "media-segment"


@dataclass(frozen=True)
class OutputArtifact:
    local_path: Path
    format: str
    role: str
    remote_key: str

    @property
    def filename(self) -> str:
        return self.local_path.name


def remote_key(job_id: str, filename: str) -> str:
    return f"streaming/{job_id}/{filename}"


def hls_role(name: str) -> str | None:
    if name.endswith(".m3u8"):
        return MANIFEST
    if name == HLS_INIT_NAME:
        return INIT_SEGMENT
    if name.endswith(".ts"):
        return MEDIA_SEGMENT
    if name.startswith(HLS_SEGMENT_PREFIX) and name.endswith(".m4s"):
        return MEDIA_SEGMENT
    return None


def dash_role(name: str) -> str | None:
    if name.startswith(HLS_SEGMENT_PREFIX) or name == HLS_INIT_NAME:
        return None
    if name.endswith(".mpd"):
        return MANIFEST
    if name.endswith(".mp4") and name.startswith("init"):
        return INIT_SEGMENT
    if name.endswith((".m4s", ".m4a")):
        return MEDIA_SEGMENT
    if name.endswith(".mp4") and "segment" in name:
        return MEDIA_SEGMENT
    return None


def classify(name: str) -> tuple[str, str] | None:
    """Return (format, role) for a filename, or None when it is not ours to ship."""
    if name == THUMBNAIL_NAME:
        return THUMBNAIL, THUMBNAIL
    role = hls_role(name)
    if role:
        return HLS, role
    role = dash_role(name)
    if role:
        return DASH, role
    return None


def _files(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_file())
    except OSError as e:
        logger.warning("Could not scan %s: %s", directory, e)
        return []


def _subdirs(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_dir())
    except OSError:
        return []


def written_since(path: Path, since: float | None) -> bool:
    if since is None:
        return True
    try:
        return path.stat().st_mtime >= since
    except OSError:
        return False


def discover(
    job_id: str, out_dir: Path, fallback_root: Path | None = None, since: float | None = None
) -> list[OutputArtifact]:
    """
    Scan out_dir, its immediate subdirectories, then fallback_root.
    The fallback root only contributes DASH init/media segments, and with
    `since` only those modified at or after that time; older files there
    belong to someone else.
    A filename seen twice keeps its first location.
    """
    out_dir = Path(out_dir)
    found: dict[str, OutputArtifact] = {}

    def take(path: Path, *, stray: bool = False):
        kind = classify(path.name)
        if kind is None:
            return
        fmt, role = kind
        if stray and (fmt != DASH or role == MANIFEST or not written_since(path, since)):
            return
        key = remote_key(job_id, path.name)
        if key in found:
            logger.debug("Skipping duplicate %s at %s", path.name, path)
            return
        found[key] = OutputArtifact(local_path=path, format=fmt, role=role, remote_key=key)

    for path in _files(out_dir):
        take(path)
    for sub in _subdirs(out_dir):
        for path in _files(sub):
            take(path)

    if fallback_root is not None:
        fallback_root = Path(fallback_root)
        if fallback_root.resolve() != out_dir.resolve():
            for path in _files(fallback_root):
                take(path, stray=True)

    artifacts = list(found.values())
    logger.info(
        "Discovered %d artifacts for job %s (dash=%d, hls=%d)",
        len(artifacts),
        job_id,
        sum(1 for a in artifacts if a.format == DASH),
        sum(1 for a in artifacts if a.format == HLS),
    )
    return artifacts
