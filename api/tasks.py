import logging
from datetime import timedelta
from functools import lru_cache

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from streaming import StreamingConfig, run_image_pipeline, run_pipeline

from .models import Job
from .s3 import S3ObjectStore
from .tracker import DjangoJobTracker

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_streaming_config() -> StreamingConfig:
    """Resolved once per process (the worker calls this at startup)."""
    return StreamingConfig.resolve(
        ffmpeg_path=settings.FFMPEG_PATH,
        ffprobe_path=settings.FFPROBE_PATH,
        bucket=settings.S3_BUCKET,
        delivery_domain=settings.CLOUDFRONT_DOMAIN,
        work_root=settings.STREAMING_WORK_ROOT,
        fallback_root=settings.STREAMING_FALLBACK_ROOT,
        upload_workers=settings.STREAMING_UPLOAD_WORKERS,
        probe_timeout=settings.STREAMING_PROBE_TIMEOUT,
        encode_timeout=settings.STREAMING_ENCODE_TIMEOUT,
        thumbnail_timeout=settings.STREAMING_THUMBNAIL_TIMEOUT,
    )


def get_object_store(config: StreamingConfig) -> S3ObjectStore:
    return S3ObjectStore(config.bucket, config.delivery_domain)


@shared_task(bind=True, acks_late=True)
def process_job(self, job_id: str):
    """Owning unit of work for one job: dispatch to the video or image pipeline."""
    job = Job.objects.get(pk=job_id)
    if job.status != Job.Status.UPLOADING:
        logger.warning("Job %s is %s; not dispatching again", job_id, job.status)
        return None

    config = get_streaming_config()
    runner = run_image_pipeline if job.media_type == Job.MediaType.IMAGE else run_pipeline
    result = runner(
        str(job.id),
        job.input_path,
        config.job_dir(str(job.id)),
        config=config,
        store=get_object_store(config),
        tracker=DjangoJobTracker(),
    )
    return result.as_dict()


@shared_task
def fail_stale_jobs() -> int:
    """
    Jobs orphaned by a worker restart stay in processing (or never leave
    uploading) forever; past the deadline they are marked failed.
    """
    cutoff = timezone.now() - timedelta(seconds=settings.STREAMING_JOB_DEADLINE_SECONDS)
    stale = Job.objects.filter(
        status__in=[Job.Status.UPLOADING, Job.Status.PROCESSING],
        updated_at__lt=cutoff,
    )
    count = 0
    for job in stale:
        job.transition(Job.Status.FAILED)
        job.error = f"Abandoned after {settings.STREAMING_JOB_DEADLINE_SECONDS}s without progress"
        job.save(update_fields=["status", "error", "updated_at"])
        count += 1
    if count:
        logger.warning("Marked %d stale jobs as failed", count)
    return count
