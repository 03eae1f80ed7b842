"""Google Cloud Storage helper for the media bucket.

Responsible for uploading media-library images, optional compression, URL
retrieval, and pulling ``gs://`` objects down to local files. Objects are
stored under the following key pattern:

    media/{attachment_key}.{ext}

Callers receive both the *gs://* path and an externally accessible URL
(signed or public depending on configuration).
"""
from __future__ import annotations

import io
import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Tuple

from google.cloud import storage
from PIL import Image

from alttext.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class StorageService:  # pylint: disable=too-few-public-methods
    """Wrapper around Google Cloud Storage uploads, downloads and signed URLs."""

    _VALID_IMAGE_PREFIX = "image/"
    _MAX_UPLOAD_BYTES = 20 * 1024 * 1024  # 20 MB

    def __init__(self, client: storage.Client | None = None) -> None:
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(settings.bucket_name)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def upload_image(
        self,
        file_bytes: bytes,
        key: str,
        *,
        content_type: str,
        compress: bool = True,
        expires: timedelta = timedelta(days=7),
    ) -> Tuple[str, str, str]:
        """Upload an image and return (gs_path, url, final_content_type).

        Parameters
        ----------
        file_bytes : bytes
            Raw image bytes as received by the upload endpoint.
        key : str
            Object key stem, usually a fresh attachment key.
        content_type : str
            Mime type, must start with ``image/``.
        compress : bool, optional
            If *True* (default) the image will be resized/compressed to
            ``settings.image_max_dim`` and ``settings.upload_quality``.
        expires : timedelta, optional
            Signed URL expiry (ignored if PUBLIC_IMAGES=true).
        """

        if not content_type.startswith(self._VALID_IMAGE_PREFIX):
            raise ValueError("Unsupported content_type; expected image/*, got %s" % content_type)

        if len(file_bytes) > self._MAX_UPLOAD_BYTES:
            raise ValueError("Image exceeds 20 MB size limit.")

        data_to_upload = file_bytes
        final_content_type = content_type

        if compress:
            try:
                data_to_upload, final_content_type = _compress_image(
                    file_bytes,
                    max_dim=settings.image_max_dim,
                    quality=settings.upload_quality,
                )
            except Exception as exc:  # pragma: no cover
                logger.warning("Image compression failed, uploading original bytes: %s", exc)

        blob_name = f"media/{key}.{_content_type_to_extension(final_content_type)}"
        blob = self._bucket.blob(blob_name)
        blob.upload_from_string(data_to_upload, content_type=final_content_type)

        if settings.public_images:
            try:
                blob.make_public()
                url = blob.public_url
            except Exception as exc:  # pragma: no cover
                logger.error("Failed to make blob public: %s", exc)
                url = blob.generate_signed_url(expires)
        else:
            url = blob.generate_signed_url(expires)

        gs_path = f"gs://{settings.bucket_name}/{blob_name}"
        logger.debug("Uploaded image to %s", gs_path)
        return gs_path, url, final_content_type

    def download_to_filename(self, gs_path: str, destination: Path) -> None:
        """Copy a ``gs://bucket/key`` object to a local file."""

        bucket_name, blob_name = _split_gs_path(gs_path)
        bucket = self._bucket if bucket_name == settings.bucket_name else self._client.bucket(bucket_name)
        blob = bucket.blob(blob_name)
        logger.debug("Downloading %s -> %s", gs_path, destination)
        blob.download_to_filename(str(destination))


# ------------------------------------------------------------------
# Helper functions
# ------------------------------------------------------------------

def _split_gs_path(gs_path: str) -> Tuple[str, str]:
    if not gs_path.startswith("gs://"):
        raise ValueError("Not a gs:// path: %s" % gs_path)
    bucket_name, _, blob_name = gs_path[len("gs://"):].partition("/")
    if not bucket_name or not blob_name:
        raise ValueError("Malformed gs:// path: %s" % gs_path)
    return bucket_name, blob_name


def _content_type_to_extension(content_type: str) -> str:
    mapping = {
        "image/jpeg": "jpg",
        "image/jpg": "jpg",
        "image/png": "png",
        "image/gif": "gif",
        "image/webp": "webp",
    }
    return mapping.get(content_type.lower(), "jpg")


def _compress_image(
    file_bytes: bytes,
    *,
    max_dim: int,
    quality: int,
) -> Tuple[bytes, str]:
    """Resize/compress image bytes using Pillow and return (bytes, new_content_type)."""

    with Image.open(io.BytesIO(file_bytes)) as img:
        img = img.convert("RGB")  # ensure RGB for JPEG
        width, height = img.size
        if max(width, height) > max_dim:
            img.thumbnail((max_dim, max_dim))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        return buffer.getvalue(), "image/jpeg"


@lru_cache()
def get_storage_service() -> StorageService:  # pragma: no cover
    """Shared instance, created on first use so imports never need credentials."""

    return StorageService()
