import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Job",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("input_path", models.CharField(max_length=512)),
                (
                    "media_type",
                    models.CharField(
                        choices=[("video", "Video"), ("image", "Image")],
                        default="video",
                        max_length=8,
                    ),
                ),
                ("caption", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("uploading", "Uploading"),
                            ("processing", "Processing"),
                            ("ready", "Ready"),
                            ("failed", "Failed"),
                        ],
                        default="uploading",
                        max_length=16,
                    ),
                ),
                ("dash_manifest_url", models.URLField(blank=True, default="", max_length=1024)),
                ("hls_playlist_url", models.URLField(blank=True, default="", max_length=1024)),
                ("thumbnail_url", models.URLField(blank=True, default="", max_length=1024)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
    ]
