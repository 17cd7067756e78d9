from .config import StreamingConfig
from .errors import (
    PipelineError,
    DownloadError,
    ProbeError,
    EncodeError,
    ThumbnailError,
    UploadError,
    CleanupError,
    ConfigError,
)
from .pipeline import PublishResult, run_pipeline, run_image_pipeline

__all__ = [
    "StreamingConfig",
    "PipelineError",
    "DownloadError",
    "ProbeError",
    "EncodeError",
    "ThumbnailError",
    "UploadError",
    "CleanupError",
    "ConfigError",
    "PublishResult",
    "run_pipeline",
    "run_image_pipeline",
]
