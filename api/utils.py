import os, mimetypes
from uuid import uuid4

ALLOWED_UPLOAD_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
}


def upload_key(filename: str) -> str:
    """uploads/<uuid><ext>; the original name is not kept in the key."""
    ext = os.path.splitext(os.path.basename(filename))[1].lower()
    return f"uploads/{uuid4().hex}{ext}"


def store_uploaded_file(djangofile, store) -> str:
    """Stream an uploaded file into the object store and return its key."""
    key = upload_key(djangofile.name)
    store.put_fileobj(djangofile, key, content_type=getattr(djangofile, "content_type", None))
    return key


def guess_kind(path: str) -> str:
    """Return 'image' | 'video' | 'other' based on mimetype/extension."""
    mime, _ = mimetypes.guess_type(path)
    if not mime:
        return "other"
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    return "other"
