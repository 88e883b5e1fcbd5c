"""Image uploads: downscale wide images, store them in the project assets bucket."""
import io
import logging
import random
import string
import time
from datetime import datetime, timezone

from PIL import Image, UnidentifiedImageError

from weblitho.config import get_settings
from weblitho.database import get_client

logger = logging.getLogger(__name__)

# Formats Pillow can write back without changing the file type
_SAVE_FORMATS = {"JPEG", "PNG", "WEBP"}


def downscale_image(image_bytes: bytes, max_width: int = 1920, quality: int = 85) -> bytes:
    """
    Resize an image to max_width, keeping aspect ratio and format.
    Images already narrow enough, animated or unreadable ones (SVG, ICO...) pass through unchanged.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
    except UnidentifiedImageError:
        return image_bytes

    fmt = img.format
    w, h = img.size
    if w <= max_width or fmt not in _SAVE_FORMATS or getattr(img, "is_animated", False):
        return image_bytes

    ratio = max_width / w
    img = img.resize((max_width, max(1, int(h * ratio))), Image.LANCZOS)

    # JPEG doesn't support alpha
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = io.BytesIO()
    if fmt == "PNG":
        img.save(buf, format=fmt, optimize=True)
    else:
        img.save(buf, format=fmt, quality=quality)
    return buf.getvalue()


def storage_path(user_id: str, filename: str, now: float | None = None) -> str:
    """`{user_id}/{timestamp_ms}-{random}.{ext}`"""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    stamp = int((now if now is not None else time.time()) * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{user_id}/{stamp}-{suffix}.{ext}"


def validate_upload(content_type: str | None, size: int):
    """Raises ValueError for non-images and files over the upload limit."""
    if not content_type or not content_type.startswith("image/"):
        raise ValueError("Only image files are allowed")
    limit = get_settings().max_upload_bytes
    if size > limit:
        raise ValueError(f"Image must be less than {limit // (1024 * 1024)}MB")


async def upload_image(user_id: str, filename: str, content_type: str | None, data: bytes) -> dict:
    validate_upload(content_type, len(data))
    settings = get_settings()

    data = downscale_image(data, max_width=settings.max_image_width)
    path = storage_path(user_id, filename)

    bucket = get_client().storage.from_(settings.storage_bucket)
    bucket.upload(path, data, {"content-type": content_type})
    logger.info("[images] Uploaded %s (%d bytes)", path, len(data))

    return {
        "id": path,
        "name": filename,
        "url": bucket.get_public_url(path),
        "size": len(data),
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }


async def list_images(user_id: str) -> list:
    bucket = get_client().storage.from_(get_settings().storage_bucket)
    images = []
    for entry in bucket.list(user_id) or []:
        path = f"{user_id}/{entry['name']}"
        images.append({
            "id": path,
            "name": entry["name"],
            "url": bucket.get_public_url(path),
            "size": (entry.get("metadata") or {}).get("size", 0),
            "createdAt": entry.get("created_at") or datetime.now(timezone.utc).isoformat(),
        })
    return images


async def delete_image(user_id: str, image_id: str) -> bool:
    # Users can only remove objects under their own folder
    if not image_id.startswith(f"{user_id}/"):
        raise ValueError("Image not found")
    get_client().storage.from_(get_settings().storage_bucket).remove([image_id])
    logger.info("[images] Deleted %s", image_id)
    return True
