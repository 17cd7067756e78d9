import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError


@dataclass(frozen=True)
class StreamingConfig:
    """
    Everything the pipeline needs from the outside world, resolved once.
    Build it with `resolve()` at worker start; tests construct it directly.
    """

    ffmpeg_path: str
    ffprobe_path: str
    bucket: str
    delivery_domain: str
    work_root: Path
    fallback_root: Path = field(default_factory=Path.cwd)
    upload_workers: int = 8
    probe_timeout: float = 60.0
    encode_timeout: float = 3600.0
    thumbnail_timeout: float = 120.0

    @classmethod
    def resolve(
        cls,
        *,
        ffmpeg_path: str,
        ffprobe_path: str,
        bucket: str,
        delivery_domain: str,
        work_root,
        fallback_root=None,
        **kwargs,
    ) -> "StreamingConfig":
        """Resolve binaries through PATH and validate; raise ConfigError on anything unusable."""
        ffmpeg = _resolve_binary("ffmpeg", ffmpeg_path)
        ffprobe = _resolve_binary("ffprobe", ffprobe_path)

        if not bucket:
            raise ConfigError("S3 bucket is not configured")
        domain = (delivery_domain or "").strip().rstrip("/")
        if domain.startswith("https://"):
            domain = domain[len("https://"):]
        if not domain:
            raise ConfigError("Delivery domain (CLOUDFRONT_DOMAIN) is not configured")

        workers = int(kwargs.pop("upload_workers", 8))
        if workers < 1:
            raise ConfigError(f"upload_workers must be >= 1, got {workers}")

        return cls(
            ffmpeg_path=ffmpeg,
            ffprobe_path=ffprobe,
            bucket=bucket,
            delivery_domain=domain,
            work_root=Path(work_root),
            fallback_root=Path(fallback_root) if fallback_root else Path.cwd(),
            upload_workers=workers,
            **{k: float(v) for k, v in kwargs.items()},
        )

    def job_dir(self, job_id: str) -> Path:
        return self.work_root / str(job_id)

    def public_url(self, key: str) -> str:
        return f"https://{self.delivery_domain}/{key}"


def _resolve_binary(name: str, configured) -> str:
    if not isinstance(configured, (str, os.PathLike)) or not str(configured).strip():
        raise ConfigError(f"Invalid {name} path: expected a path, got {configured!r}")
    found = shutil.which(str(configured))
    if not found:
        raise ConfigError(f"{name} not found: {configured}")
    return found
