"""
Photo intake - policy checks, format normalization, and previews.

Every accepted photo yields exactly one file to upload and one preview
file on disk. Previews are scoped resources: released on removal, on
`release_all()`, or when the intake is used as a context manager and
exits. No network calls happen here.
"""

import io
import os
import tempfile
from pathlib import Path, PurePath

from PIL import Image
from pillow_heif import register_heif_opener

from snaglog.config import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    MAX_PHOTO_SIZE_MB,
    PREVIEW_MAX_SIZE,
    TRANSCODE_MIME_TYPES,
    TRANSCODE_QUALITY,
)
from snaglog.logger import get_logger
from snaglog.models import IntakePhoto, PhotoRejectedError, PhotoValidation, RawPhoto

logger = get_logger(__name__)

register_heif_opener()


def validate_photo(photo: RawPhoto) -> PhotoValidation:
    """
    Checks a raw photo against intake policy.

    1. File size
    2. Type (declared, else inferred from the extension) in the allowlist

    Returns PhotoValidation with is_valid=False for rejections.
    """
    size_bytes = len(photo.data)
    size_mb = size_bytes / (1024 * 1024)

    if size_mb > MAX_PHOTO_SIZE_MB:
        return PhotoValidation(
            is_valid=False,
            error_message=f"Photo too large: {size_mb:.1f}MB (max {MAX_PHOTO_SIZE_MB}MB)",
            size_bytes=size_bytes,
        )

    content_type = resolve_content_type(photo)
    if content_type not in ALLOWED_MIME_TYPES:
        return PhotoValidation(
            is_valid=False,
            error_message=f"Unsupported type: {content_type or 'unknown'}",
            content_type=content_type,
            size_bytes=size_bytes,
        )

    return PhotoValidation(is_valid=True, content_type=content_type, size_bytes=size_bytes)


def resolve_content_type(photo: RawPhoto) -> str | None:
    """Declared MIME type, or the one implied by the file extension."""
    declared = (photo.content_type or "").lower()
    if declared and declared != "application/octet-stream":
        return declared
    return ALLOWED_EXTENSIONS.get(PurePath(photo.filename).suffix.lower())


def needs_transcode(content_type: str | None, filename: str) -> bool:
    suffix = PurePath(filename).suffix.lower()
    return content_type in TRANSCODE_MIME_TYPES or suffix in {".heic", ".heif"}


def normalize_photo(photo: RawPhoto, content_type: str) -> tuple[str, str, bytes, bool]:
    """
    Converts formats generic viewers cannot display to JPEG.

    Returns (filename, content_type, data, converted). On conversion
    failure the original photo is returned unchanged.
    """
    if not needs_transcode(content_type, photo.filename):
        return photo.filename, content_type, photo.data, False

    try:
        img = Image.open(io.BytesIO(photo.data))
        buf = io.BytesIO()
        img.convert("RGB").save(buf, format="JPEG", quality=TRANSCODE_QUALITY)
    except Exception as e:
        logger.warning("photo conversion failed, keeping original", filename=photo.filename, error=str(e))
        return photo.filename, content_type, photo.data, False

    filename = str(PurePath(photo.filename).with_suffix(".jpg"))
    return filename, "image/jpeg", buf.getvalue(), True


class PhotoIntake:
    """
    Ordered list of accepted photos and the previews they own.

    Each preview is released exactly once; releasing again is a no-op.
    """

    def __init__(self, preview_dir: str | None = None):
        self._preview_dir = preview_dir
        self._photos: list[IntakePhoto] = []
        self._released: set[str] = set()

    def __enter__(self) -> "PhotoIntake":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release_all()

    def __len__(self) -> int:
        return len(self._photos)

    @property
    def photos(self) -> list[IntakePhoto]:
        return list(self._photos)

    @property
    def previews(self) -> list[str]:
        return [p.preview_path for p in self._photos]

    def accept(self, files: list[RawPhoto]) -> list[PhotoRejectedError]:
        """
        Accepts a batch of photos in order.

        Rejected files are skipped and returned; they never fail the batch.
        """
        rejections: list[PhotoRejectedError] = []
        for raw in files:
            try:
                self.accept_one(raw)
            except PhotoRejectedError as e:
                logger.info("photo rejected", filename=e.filename, reason=e.reason)
                rejections.append(e)
        return rejections

    def accept_one(self, raw: RawPhoto) -> IntakePhoto:
        """
        Raises:
            PhotoRejectedError: If the photo fails size or type policy.
        """
        validation = validate_photo(raw)
        if not validation.is_valid:
            raise PhotoRejectedError(raw.filename, validation.error_message or "rejected")

        filename, content_type, data, converted = normalize_photo(raw, validation.content_type)
        photo = IntakePhoto(
            filename=filename,
            content_type=content_type,
            data=data,
            preview_path=self._write_preview(filename, data),
            converted=converted,
        )
        self._photos.append(photo)
        return photo

    def remove(self, index: int) -> IntakePhoto:
        """Drops the photo at `index` and releases its preview."""
        photo = self._photos.pop(index)
        self._release(photo.preview_path)
        return photo

    def release_all(self) -> None:
        """Releases every preview and empties the intake."""
        for photo in self._photos:
            self._release(photo.preview_path)
        self._photos = []

    # --- Internal ---

    def _write_preview(self, filename: str, data: bytes) -> str:
        """Thumbnail JPEG when the image decodes, otherwise the raw bytes."""
        try:
            img = Image.open(io.BytesIO(data))
            img.thumbnail(PREVIEW_MAX_SIZE)
            buf = io.BytesIO()
            img.convert("RGB").save(buf, format="JPEG")
            payload, suffix = buf.getvalue(), ".jpg"
        except Exception as e:
            logger.warning("preview decode failed, using raw bytes", filename=filename, error=str(e))
            payload, suffix = data, PurePath(filename).suffix or ".img"

        fd, path = tempfile.mkstemp(prefix="snaglog-preview-", suffix=suffix, dir=self._preview_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        return path

    def _release(self, preview_path: str) -> None:
        if preview_path in self._released:
            return
        Path(preview_path).unlink(missing_ok=True)
        self._released.add(preview_path)
