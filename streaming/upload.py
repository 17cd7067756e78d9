import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Protocol

from .discovery import OutputArtifact
from .errors import UploadError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".mpd": "application/dash+xml",
    ".m3u8": "application/vnd.apple.mpegurl",
    ".m4s": "video/mp4",
    ".mp4": "video/mp4",
    ".ts": "video/mp2t",
    ".m4a": "audio/mp4",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ObjectStore(Protocol):
    def fetch(self, location: str, dest: Path) -> Path: ...

    def put(self, local_path: Path, key: str, content_type: str) -> str: ...


def content_type_for(filename) -> str:
    return CONTENT_TYPES.get(Path(str(filename)).suffix.lower(), DEFAULT_CONTENT_TYPE)


def upload_artifacts(store: ObjectStore, artifacts: list[OutputArtifact], *, max_workers: int = 8) -> dict[str, str]:
    """
    Upload every artifact concurrently. Returns {remote_key: url}.
    All uploads are allowed to finish; if any failed, raises UploadError
    naming the failed keys.
    """
    if not artifacts:
        return {}

    urls: dict[str, str] = {}
    failed: list[str] = []
    first_error = None

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(artifacts)))) as executor:
        future_map = {
            executor.submit(store.put, a.local_path, a.remote_key, content_type_for(a.local_path)): a
            for a in artifacts
        }
        for future in as_completed(future_map):
            artifact = future_map[future]
            try:
                urls[artifact.remote_key] = future.result()
            except Exception as e:
                logger.error("Upload failed for %s: %s", artifact.remote_key, e)
                failed.append(artifact.remote_key)
                if first_error is None:
                    first_error = e

    if failed:
        raise UploadError(
            f"{len(failed)} of {len(artifacts)} uploads failed; first error: {first_error}",
            failed_keys=sorted(failed),
        )
    logger.info("Uploaded %d artifacts", len(urls))
    return urls
