"""
Media storage: note images kept in a Supabase Storage bucket.

Images are re-encoded to JPEG with Pillow and stored under a generated key
`image_{epoch_ms}_{hex8}.jpg`. Notes only hold the key and metadata; the bytes
are served back through the notes router after an ownership check.
"""

import io
import logging
import os
import time
import uuid

from PIL import Image, UnidentifiedImageError
from storage3.utils import StorageException
from supabase import Client

from notesai.core.exceptions import InternalError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
}

CONTENT_TYPES_BY_EXT = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def validate_image_upload(content_type: str | None, size: int, max_bytes: int) -> None:
    """Reject unsupported formats and oversized files before touching storage."""
    if content_type not in SUPPORTED_IMAGE_TYPES:
        raise ValidationError("Unsupported file format. Use JPEG, PNG, WebP or GIF.")
    if size == 0:
        raise ValidationError("No image file was sent.")
    if size > max_bytes:
        raise ValidationError(f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB.")


def content_type_for(file_name: str) -> str:
    ext = os.path.splitext(file_name)[1].lower()
    return CONTENT_TYPES_BY_EXT.get(ext, "image/jpeg")


def _generate_key() -> str:
    return f"image_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.jpg"


class MediaStore:
    """Stores, fetches and removes note images in one Storage bucket."""

    def __init__(self, client: Client, bucket: str, jpeg_quality: int = 90):
        self.client = client
        self.bucket = bucket
        self.jpeg_quality = jpeg_quality

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def _encode_jpeg(self, data: bytes) -> tuple[bytes, int, int]:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError):
            raise ValidationError("Uploaded file is not a readable image.")
        except Image.DecompressionBombError:
            raise ValidationError("Image dimensions are too large.")

        width, height = image.size
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue(), width, height

    def store(self, data: bytes, mime_type: str) -> dict:
        """Re-encode and upload an image.

        Returns:
            dict with file_name (storage key), file_url, mime_type, file_size,
            width and height of the stored image.
        """
        encoded, width, height = self._encode_jpeg(data)
        key = _generate_key()

        try:
            self._bucket().upload(
                path=key,
                file=encoded,
                file_options={"content-type": "image/jpeg"},
            )
        except StorageException as e:
            logger.error(f"Upload of {key} to bucket '{self.bucket}' failed: {e}")
            raise InternalError("Could not store the image.", detail=str(e))
        logger.info(f"Stored image {key} ({len(encoded)} bytes, source {mime_type})")

        return {
            "file_name": key,
            "file_url": self._bucket().get_public_url(key),
            "mime_type": "image/jpeg",
            "file_size": len(encoded),
            "width": width,
            "height": height,
        }

    def fetch(self, key: str) -> tuple[bytes, str]:
        """Download an image's bytes. Raises NotFoundError if the object is missing."""
        try:
            data = self._bucket().download(key)
        except StorageException:
            raise NotFoundError("Image file not found.")
        return data, content_type_for(key)

    def delete(self, key: str) -> bool:
        """Remove one object. A missing object is not an error; returns False then."""
        removed = self._bucket().remove([key])
        return bool(removed)
