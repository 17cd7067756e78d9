import uuid
from django.db import models


class InvalidTransition(Exception):
    pass


class Job(models.Model):
    class Status(models.TextChoices):
        UPLOADING = "uploading"
        PROCESSING = "processing"
        READY = "ready"
        FAILED = "failed"

    class MediaType(models.TextChoices):
        VIDEO = "video"
        IMAGE = "image"

    # forward-only; a failed job is resubmitted as a new job
    TRANSITIONS = {
        Status.UPLOADING: {Status.PROCESSING, Status.FAILED},
        Status.PROCESSING: {Status.READY, Status.FAILED},
        Status.READY: set(),
        Status.FAILED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    input_path = models.CharField(max_length=512)     # relative to MEDIA_ROOT or S3 key/URL
    media_type = models.CharField(max_length=8, choices=MediaType.choices, default=MediaType.VIDEO)
    caption = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.UPLOADING)
    dash_manifest_url = models.URLField(max_length=1024, blank=True, default="")
    hls_playlist_url = models.URLField(max_length=1024, blank=True, default="")
    thumbnail_url = models.URLField(max_length=1024, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)   # probed VideoMetadata
    error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def transition(self, status: str):
        if status not in self.TRANSITIONS[self.Status(self.status)]:
            raise InvalidTransition(f"Job {self.pk}: {self.status} -> {status} is not allowed")
        self.status = status

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.READY, self.Status.FAILED)
