"""
Local file store for lost & found images.

Images live under ``<UPLOAD_DIR>/lostfound/`` and are referenced from records
by their public path ``/uploads/lostfound/<name>``.
"""
import logging
import os
import shutil
import time
import uuid
from pathlib import Path

from fastapi import UploadFile

from ..circuit_breaker import file_store_breaker
from ..config import settings
from ..errors import ValidationFailed

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "lostfound"
PUBLIC_PREFIX = "/uploads"


def image_dir() -> Path:
    return Path(settings.UPLOAD_DIR) / IMAGE_FOLDER


def validate_image(upload: UploadFile) -> None:
    """Reject non-image uploads and anything larger than ``MAX_IMAGE_SIZE``."""
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationFailed("Only image files are allowed!")

    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    if size > settings.MAX_IMAGE_SIZE:
        raise ValidationFailed(
            f"Image too large. Maximum size: {settings.MAX_IMAGE_SIZE / (1024 * 1024):.1f}MB"
        )


@file_store_breaker
def _write(target: Path, upload: UploadFile) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as out:
        shutil.copyfileobj(upload.file, out)


def save_image(upload: UploadFile) -> str:
    """Store ``upload`` and return its public path."""
    validate_image(upload)
    extension = Path(upload.filename or "").suffix.lower()
    name = f"image-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{extension}"
    _write(image_dir() / name, upload)
    logger.info("Stored image %s (%s)", name, upload.content_type)
    return f"{PUBLIC_PREFIX}/{IMAGE_FOLDER}/{name}"


def delete_image(public_path: str) -> bool:
    """
    Remove the file behind ``public_path``.

    Best-effort: failures are logged and reported through the return value,
    never raised, so the owning record can still be deleted.
    """
    target = image_dir() / Path(public_path).name
    try:
        os.remove(target)
    except OSError:
        logger.exception("Error deleting image file %s", target)
        return False
    logger.info("Deleted image %s", target)
    return True
