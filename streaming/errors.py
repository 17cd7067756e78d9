class PipelineError(Exception):
    """Base error for a streaming job. `stage` names the step that failed."""

    stage = "pipeline"

    def __init__(self, message: str, *, stderr: str | None = None):
        super().__init__(message)
        self.stderr = stderr

    def detail(self, limit: int = 4000) -> str:
        text = str(self)
        if self.stderr:
            text = f"{text}\n{self.stderr}"
        return text[:limit]


class DownloadError(PipelineError):
    stage = "download"


class ProbeError(PipelineError):
    stage = "probe"


class EncodeError(PipelineError):
    stage = "encode"


class ThumbnailError(PipelineError):
    stage = "thumbnail"


class UploadError(PipelineError):
    stage = "upload"

    def __init__(self, message: str, *, failed_keys=None):
        super().__init__(message)
        self.failed_keys = list(failed_keys or [])


class CleanupError(PipelineError):
    """Logged only; cleanup never lets this escape."""

    stage = "cleanup"


class ConfigError(Exception):
    """Encoder/prober/storage configuration could not be resolved at startup."""
