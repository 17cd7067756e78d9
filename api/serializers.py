from pathlib import PurePosixPath

from django.conf import settings
from rest_framework import serializers

from .models import Job
from .utils import ALLOWED_UPLOAD_TYPES, guess_kind


class JobSerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = [
            "id",
            "status",
            "media_type",
            "caption",
            "dash_manifest_url",
            "hls_playlist_url",
            "thumbnail_url",
            "metadata",
            "error",
            "created_at",
            "updated_at",
        ]


class UploadCreateSerializer(serializers.Serializer):
    file = serializers.FileField()
    caption = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_file(self, value):
        content_type = getattr(value, "content_type", None)
        if content_type not in ALLOWED_UPLOAD_TYPES:
            raise serializers.ValidationError(
                "Invalid file type. Only images and videos are allowed."
            )
        if value.size > settings.MAX_UPLOAD_BYTES:
            raise serializers.ValidationError(
                f"File too large; limit is {settings.MAX_UPLOAD_BYTES} bytes."
            )
        return value


class PresignRequestSerializer(serializers.Serializer):
    filename = serializers.CharField()
    content_type = serializers.CharField(required=False, allow_blank=True)


class PresignResponseSerializer(serializers.Serializer):
    key = serializers.CharField()
    url = serializers.URLField()
    headers = serializers.DictField(child=serializers.CharField(), required=False)


class JobFromKeyRequestSerializer(serializers.Serializer):
    key = serializers.CharField()
    caption = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_key(self, value):
        if value.startswith("/") or ".." in PurePosixPath(value).parts:
            raise serializers.ValidationError("Key must be relative and stay inside the bucket.")
        if guess_kind(value) not in ("image", "video"):
            raise serializers.ValidationError("Unsupported file type; expected an image or video key.")
        return value
