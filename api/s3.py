import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config as BotoConfig
from django.conf import settings

from streaming.errors import DownloadError


def _boto_config() -> BotoConfig:
    return BotoConfig(
        s3={"addressing_style": "path"},
        signature_version="s3v4",
        connect_timeout=settings.S3_CONNECT_TIMEOUT,
        read_timeout=settings.S3_READ_TIMEOUT,
        retries={"max_attempts": settings.S3_MAX_ATTEMPTS, "mode": "standard"},
        max_pool_connections=max(10, settings.STREAMING_UPLOAD_WORKERS * 2),
    )


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # None means real AWS
        config=_boto_config(),
    )


def get_presign_client():
    """
    Separate client for generating presigned URLs that the browser/curl will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    public_endpoint = os.getenv("S3_PUBLIC_ENDPOINT", settings.S3_ENDPOINT_URL)
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=public_endpoint,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def create_presigned_put(key: str, content_type: str | None = None, expires: int | None = None) -> dict:
    """
    Create a presigned PUT URL to upload a single object directly to S3/MinIO.

    ContentType is deliberately left out of the signed params so clients that
    omit or alter the header still match the signature.
    """
    s3 = get_presign_client()
    url = s3.generate_presigned_url(
        ClientMethod="put_object",
        Params={"Bucket": settings.S3_BUCKET, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="PUT",
    )
    headers = {"Content-Type": content_type} if content_type else {}
    return {"url": url, "headers": headers}


def key_from_location(location: str, bucket: str) -> str:
    """
    Accepts a bare key ("uploads/a.mp4"), an s3:// URI, or an http(s) object URL
    (virtual-hosted "bucket.s3.region.amazonaws.com/key" or path-style "host/bucket/key").
    """
    parsed = urlparse(location)
    if parsed.scheme == "s3":
        return parsed.path.lstrip("/")
    if parsed.scheme in ("http", "https"):
        path = unquote(parsed.path.lstrip("/"))
        host = parsed.netloc
        if host.startswith(f"{bucket}.") and ".s3" in host:
            return path
        if path.startswith(f"{bucket}/"):
            return path[len(bucket) + 1:]
        return path
    return location.lstrip("/")


class S3ObjectStore:
    """Object store used by the pipeline: fetch the source, put artifacts."""

    def __init__(self, bucket: str, delivery_domain: str, client=None):
        self.bucket = bucket
        self.delivery_domain = delivery_domain
        # boto3 clients are thread-safe; one is shared by the upload pool
        self.client = client or get_s3_client()

    def _local_source(self, location: str) -> Path | None:
        """A file under MEDIA_ROOT named by `location`; never anything outside it."""
        if urlparse(location).scheme:
            return None
        media_root = Path(settings.MEDIA_ROOT).resolve()
        candidate = (media_root / location).resolve()
        if not candidate.is_relative_to(media_root) or not candidate.is_file():
            return None
        return candidate

    def fetch(self, location: str, dest: Path) -> Path:
        local_source = self._local_source(location)
        if local_source is not None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_source, dest)
            return dest

        key = key_from_location(location, self.bucket)
        if not key:
            raise DownloadError(f"No object key in {location!r}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.client.download_file(self.bucket, key, str(dest))
        return dest

    def put(self, local_path: Path, key: str, content_type: str) -> str:
        self.client.upload_file(
            str(local_path), self.bucket, key, ExtraArgs={"ContentType": content_type}
        )
        return f"https://{self.delivery_domain}/{key}"

    def put_fileobj(self, fileobj, key: str, content_type: str | None = None) -> str:
        extra = {"ContentType": content_type} if content_type else None
        self.client.upload_fileobj(fileobj, self.bucket, key, ExtraArgs=extra)
        return key
