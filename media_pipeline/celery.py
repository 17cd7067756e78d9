import os
from celery import Celery
from celery.signals import worker_init

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "media_pipeline.settings")

celery_app = Celery("media_pipeline")
celery_app.config_from_object("django.conf:settings", namespace="CELERY")
celery_app.autodiscover_tasks()


@worker_init.connect
def resolve_streaming_config(**kwargs):
    # fail fast if ffmpeg/ffprobe/bucket/domain are not usable
    import django

    django.setup()
    from api.tasks import get_streaming_config

    get_streaming_config()
