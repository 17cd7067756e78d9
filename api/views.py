
from django.conf import settings
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .models import Job
from .s3 import S3ObjectStore, create_presigned_put
from .serializers import (
    UploadCreateSerializer,
    JobSerializer,
    PresignRequestSerializer,
    PresignResponseSerializer,
    JobFromKeyRequestSerializer,
)
from .tasks import process_job
from .utils import guess_kind, store_uploaded_file, upload_key


def get_upload_store() -> S3ObjectStore:
    return S3ObjectStore(settings.S3_BUCKET, settings.CLOUDFRONT_DOMAIN)


def _create_and_dispatch(key: str, caption: str = "") -> Job:
    media_type = Job.MediaType.IMAGE if guess_kind(key) == "image" else Job.MediaType.VIDEO
    job = Job.objects.create(input_path=key, media_type=media_type, caption=caption)
    process_job.delay(str(job.id))  # queue background processing
    return job


class UploadAndCreateJobView(views.APIView):
    """
    Accepts a multipart upload, stores the original in S3 under uploads/,
    creates a Job in `uploading` and enqueues the pipeline.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = UploadCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        key = store_uploaded_file(ser.validated_data["file"], get_upload_store())
        job = _create_and_dispatch(key, ser.validated_data.get("caption", ""))
        return Response(
            {"job_id": str(job.id), "media_type": job.media_type},
            status=status.HTTP_202_ACCEPTED,
        )


class JobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        try:
            job = Job.objects.get(pk=job_id)
        except Job.DoesNotExist:
            return Response({"detail": "Not found"}, status=404)
        return Response(JobSerializer(job).data)


class PresignUploadView(views.APIView):
    """
    Returns a presigned PUT URL + recommended key so the client can upload
    directly to MinIO/S3 without streaming through Django.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = PresignRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        filename = ser.validated_data["filename"]
        content_type = ser.validated_data.get("content_type") or None

        key = upload_key(filename)

        signed = create_presigned_put(key, content_type=content_type)
        resp = {"key": key, "url": signed["url"], "headers": signed.get("headers", {})}
        out = PresignResponseSerializer(resp).data
        return Response(out, status=201)


class CreateJobFromKeyView(views.APIView):
    """Creates a Job from an object already uploaded to MinIO/S3 by key."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = JobFromKeyRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        job = _create_and_dispatch(ser.validated_data["key"], ser.validated_data.get("caption", ""))
        return Response({"job_id": str(job.id), "media_type": job.media_type}, status=202)
