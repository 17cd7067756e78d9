import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .cleanup import cleanup
from .config import StreamingConfig
from .discovery import OutputArtifact, discover, remote_key
from .encode import DASH_MANIFEST, HLS_PLAYLIST, encode_dash, encode_hls
from .errors import DownloadError, PipelineError, UploadError
from .images import OPTIMIZED_NAME, optimize_image
from .probe import VideoMetadata, probe
from .thumbnail import THUMBNAIL_NAME, extract_thumbnail
from .upload import ObjectStore, upload_artifacts

logger = logging.getLogger(__name__)

SOURCE_NAME = "input.mp4"


class JobTracker(Protocol):
    def set_processing(self, job_id: str) -> None: ...

    def set_ready(self, job_id: str, result: "PublishResult") -> None: ...

    def set_failed(self, job_id: str, error: str) -> None: ...


@dataclass(frozen=True)
class PublishResult:
    dash_url: str | None
    hls_url: str | None
    thumbnail_url: str
    metadata: VideoMetadata | None = None

    def as_dict(self) -> dict:
        return {
            "dash_url": self.dash_url,
            "hls_url": self.hls_url,
            "thumbnail_url": self.thumbnail_url,
            "metadata": self.metadata.as_dict() if self.metadata else None,
        }


def _download(store: ObjectStore, location: str, dest: Path) -> Path:
    try:
        path = Path(store.fetch(location, dest))
    except DownloadError:
        raise
    except Exception as e:
        raise DownloadError(f"Could not fetch {location}: {e}")
    if not path.is_file() or path.stat().st_size == 0:
        raise DownloadError(f"Source for {location} is missing or empty at {path}")
    logger.info("Downloaded %s to %s (%d bytes)", location, path, path.stat().st_size)
    return path


def _require(artifacts: list[OutputArtifact], job_id: str, *names: str):
    keys = {a.remote_key for a in artifacts}
    missing = [n for n in names if remote_key(job_id, n) not in keys]
    if missing:
        raise UploadError(f"Nothing to publish for {', '.join(missing)}", failed_keys=missing)


def _run(job_id, tracker: JobTracker, steps, tidy):
    """Shared lifecycle: processing -> steps -> cleanup -> ready | failed."""
    tracker.set_processing(job_id)
    try:
        result = steps()
    except Exception as e:
        if isinstance(e, PipelineError):
            logger.error("Job %s failed at %s: %s", job_id, e.stage, e)
            detail = e.detail()
        else:
            logger.exception("Job %s failed unexpectedly", job_id)
            detail = f"{type(e).__name__}: {e}"[:4000]
        try:
            tracker.set_failed(job_id, detail)
        except Exception:
            # the stage error is what the caller sees
            logger.exception("Could not record failure of job %s", job_id)
        finally:
            tidy()
        raise

    tidy()
    tracker.set_ready(job_id, result)
    logger.info("Job %s ready: %s", job_id, result.dash_url or result.thumbnail_url)
    return result


def run_pipeline(
    job_id: str,
    source_location: str,
    work_dir,
    *,
    config: StreamingConfig,
    store: ObjectStore,
    tracker: JobTracker,
) -> PublishResult:
    """
    Probe, encode DASH then HLS, grab a thumbnail, find every artifact,
    upload them all, clean up, and record the outcome through `tracker`.
    Any stage error marks the job failed and is re-raised.
    """
    job_id = str(job_id)
    work_dir = Path(work_dir)
    # set once encoding starts; stray files older than this are not ours
    encode_started = None

    def steps() -> PublishResult:
        nonlocal encode_started
        work_dir.mkdir(parents=True, exist_ok=True)
        source = _download(store, source_location, work_dir / SOURCE_NAME)
        meta = probe(source, ffprobe_path=config.ffprobe_path, timeout=config.probe_timeout)

        # truncated to whole seconds for filesystems with coarse mtimes
        encode_started = float(int(time.time()))
        logger.info("Job %s: encoding DASH", job_id)
        encode_dash(
            source, work_dir, meta,
            ffmpeg_path=config.ffmpeg_path, timeout=config.encode_timeout, cwd=work_dir,
        )
        logger.info("Job %s: encoding HLS", job_id)
        encode_hls(
            source, work_dir, meta,
            ffmpeg_path=config.ffmpeg_path, timeout=config.encode_timeout, cwd=work_dir,
        )
        extract_thumbnail(
            source, work_dir, meta.duration_seconds,
            ffmpeg_path=config.ffmpeg_path, timeout=config.thumbnail_timeout,
        )

        artifacts = discover(job_id, work_dir, config.fallback_root, since=encode_started)
        _require(artifacts, job_id, DASH_MANIFEST, HLS_PLAYLIST, THUMBNAIL_NAME)
        upload_artifacts(store, artifacts, max_workers=config.upload_workers)

        return PublishResult(
            dash_url=config.public_url(remote_key(job_id, DASH_MANIFEST)),
            hls_url=config.public_url(remote_key(job_id, HLS_PLAYLIST)),
            thumbnail_url=config.public_url(remote_key(job_id, THUMBNAIL_NAME)),
            metadata=meta,
        )

    def tidy():
        if encode_started is None:
            return cleanup(work_dir)
        return cleanup(work_dir, config.fallback_root, since=encode_started)

    return _run(job_id, tracker, steps, tidy)


def run_image_pipeline(
    job_id: str,
    source_location: str,
    work_dir,
    *,
    config: StreamingConfig,
    store: ObjectStore,
    tracker: JobTracker,
) -> PublishResult:
    """Image posts: download, shrink to fit 1080p, publish as the thumbnail."""
    job_id = str(job_id)
    work_dir = Path(work_dir)

    def steps() -> PublishResult:
        work_dir.mkdir(parents=True, exist_ok=True)
        source = _download(store, source_location, work_dir / f"input{Path(source_location).suffix.lower()}")
        optimized = optimize_image(source, work_dir / OPTIMIZED_NAME)
        artifact = OutputArtifact(
            local_path=optimized,
            format="image",
            role="thumbnail",
            remote_key=remote_key(job_id, OPTIMIZED_NAME),
        )
        upload_artifacts(store, [artifact], max_workers=1)
        return PublishResult(
            dash_url=None,
            hls_url=None,
            thumbnail_url=config.public_url(artifact.remote_key),
        )

    return _run(job_id, tracker, steps, lambda: cleanup(work_dir))
