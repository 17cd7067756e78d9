import logging

from django.db import transaction

from .models import Job

logger = logging.getLogger(__name__)


class DjangoJobTracker:
    """Writes pipeline lifecycle transitions onto the Job row."""

    def _move(self, job_id: str, status: str, **fields) -> Job:
        with transaction.atomic():
            job = Job.objects.select_for_update().get(pk=job_id)
            job.transition(status)
            for name, value in fields.items():
                setattr(job, name, value)
            job.save(update_fields=["status", *fields, "updated_at"])
        logger.info("Job %s -> %s", job_id, status)
        return job

    def set_processing(self, job_id: str) -> None:
        self._move(job_id, Job.Status.PROCESSING)

    def set_ready(self, job_id: str, result) -> None:
        self._move(
            job_id,
            Job.Status.READY,
            dash_manifest_url=result.dash_url or "",
            hls_playlist_url=result.hls_url or "",
            thumbnail_url=result.thumbnail_url,
            metadata=result.metadata.as_dict() if result.metadata else {},
        )

    def set_failed(self, job_id: str, error: str = "") -> None:
        self._move(job_id, Job.Status.FAILED, error=(error or "")[:4000])
