from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ThumbnailError

OPTIMIZED_NAME = "optimized.jpg"
MAX_SIZE = (1920, 1080)


def optimize_image(source: Path, dest: Path) -> Path:
    """Fit inside 1920x1080 (never enlarging) and save as progressive JPEG q85."""
    try:
        img = Image.open(source)
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ThumbnailError(f"Could not read image {source}: {e}")

    img.thumbnail(MAX_SIZE)  # only ever shrinks
    dest.parent.mkdir(parents=True, exist_ok=True)
    img.save(dest, format="JPEG", quality=85, progressive=True, optimize=True)
    return dest
