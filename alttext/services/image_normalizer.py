"""Bound an image's pixel dimensions before it is sent to a vision API.

Sources may be a ``Path`` to a local file, a URL under ``MEDIA_BASE_URL``
(read from ``MEDIA_ROOT`` and confined to it), an ``http(s)://`` URL or a
``gs://`` object. String paths and ``file://`` URLs are refused. Remote
sources are fetched into a temporary file that is removed on every exit path.
"""
from __future__ import annotations

import io
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from alttext.config import get_settings
from alttext.models import NormalizedImage

logger = logging.getLogger(__name__)
settings = get_settings()

_RESIZABLE_FORMATS = {"JPEG", "PNG", "GIF", "WEBP"}
_FLATTEN_BACKGROUND = (255, 255, 255)
_FETCH_TIMEOUT = 30.0


class ImageProcessingError(Exception):
    """Raised when an image cannot be resolved, decoded or re-encoded."""


def normalize(
    source: str | os.PathLike,
    max_width: int = 256,
    max_height: int = 256,
    quality: int = 50,
    *,
    http_client: httpx.Client | None = None,
    tmp_dir: str | os.PathLike | None = None,
) -> NormalizedImage:
    """Return ``source`` as a payload no larger than ``max_width`` x ``max_height``.

    Images already inside the bound pass through byte-for-byte with their
    native MIME type. Larger ones are scaled by a single ratio, flattened onto
    white if they carry transparency, and re-encoded as JPEG at ``quality``.
    """

    if not source:
        raise ImageProcessingError("No image source given")

    with _resolved_path(source, http_client=http_client, tmp_dir=tmp_dir) as path:
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ImageProcessingError(f"Cannot read image {source}: {exc}") from exc
        return _normalize_bytes(raw, max_width, max_height, quality)


def _normalize_bytes(raw: bytes, max_width: int, max_height: int, quality: int) -> NormalizedImage:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageProcessingError(f"Undecodable image: {exc}") from exc

    with img:
        orig_width, orig_height = img.size
        image_format = img.format or ""
        ratio = min(max_width / orig_width, max_height / orig_height)

        if ratio >= 1:
            mime_type = Image.MIME.get(image_format)
            if mime_type is None:
                raise ImageProcessingError(f"Unknown MIME type for format {image_format!r}")
            return NormalizedImage(
                data=raw,
                mime_type=mime_type,
                width=orig_width,
                height=orig_height,
                resized=False,
            )

        if image_format not in _RESIZABLE_FORMATS:
            raise ImageProcessingError(f"Unsupported image format {image_format!r}")

        new_size = (max(1, round(orig_width * ratio)), max(1, round(orig_height * ratio)))
        try:
            rgb = _flatten(img)
            resized = rgb.resize(new_size, Image.Resampling.LANCZOS)
            buffer = io.BytesIO()
            resized.save(buffer, format="JPEG", quality=quality)
        except (OSError, ValueError) as exc:
            raise ImageProcessingError(f"Re-encoding failed: {exc}") from exc

    logger.debug("Resized image %dx%d -> %dx%d", orig_width, orig_height, *new_size)
    return NormalizedImage(
        data=buffer.getvalue(),
        mime_type="image/jpeg",
        width=new_size[0],
        height=new_size[1],
        resized=True,
    )


def _flatten(img: Image.Image) -> Image.Image:
    """Composite any transparency onto a white background and return RGB."""

    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    if not has_alpha:
        return img.convert("RGB")
    rgba = img.convert("RGBA")
    background = Image.new("RGB", rgba.size, _FLATTEN_BACKGROUND)
    background.paste(rgba, mask=rgba.getchannel("A"))
    return background


# ---------------------------------------------------------------------------
# Source resolution
# ---------------------------------------------------------------------------


def _local_path(source: str | os.PathLike) -> Path | None:
    """Map a source to a readable local path, or None if it must be fetched.

    Only ``Path``-like sources and URLs under ``MEDIA_BASE_URL`` are read
    from disk. String paths and ``file://`` URLs are refused.
    """

    if isinstance(source, os.PathLike):
        return Path(source)
    if settings.media_base_url and settings.media_root:
        base = settings.media_base_url.rstrip("/") + "/"
        if source.startswith(base):
            relative = unquote(source[len(base):].split("?", 1)[0])
            root = Path(settings.media_root).resolve()
            path = (root / relative).resolve()
            if not path.is_relative_to(root):
                raise ImageProcessingError(f"Media path escapes the media root: {source}")
            return path
    return None


@contextmanager
def _resolved_path(
    source: str | os.PathLike,
    *,
    http_client: httpx.Client | None = None,
    tmp_dir: str | os.PathLike | None = None,
) -> Iterator[Path]:
    local = _local_path(source)
    if local is not None:
        yield local
        return

    scheme = urlparse(source).scheme
    if scheme not in ("http", "https", "gs"):
        raise ImageProcessingError(f"Unsupported image location {source!r}")

    directory = tmp_dir if tmp_dir is not None else settings.tmp_dir
    try:
        tmp = tempfile.NamedTemporaryFile(prefix="alttext-", suffix=".img", dir=directory, delete=False)
    except OSError as exc:
        raise ImageProcessingError(f"Cannot create temporary file in {directory}: {exc}") from exc
    tmp_path = Path(tmp.name)
    try:
        try:
            with tmp:
                if scheme != "gs":
                    _download_http(source, tmp, http_client)
        except OSError as exc:
            raise ImageProcessingError(f"Cannot write temporary file {tmp_path}: {exc}") from exc
        if scheme == "gs":
            _download_gs(source, tmp_path)
        yield tmp_path
    finally:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass


def _download_http(source: str, fh, http_client: httpx.Client | None) -> None:
    client = http_client or httpx.Client(timeout=_FETCH_TIMEOUT, follow_redirects=True)
    try:
        with client.stream("GET", source) as resp:
            if resp.status_code >= 400:
                raise ImageProcessingError(f"Download failed with HTTP {resp.status_code}: {source}")
            for chunk in resp.iter_bytes():
                fh.write(chunk)
    except httpx.HTTPError as exc:
        raise ImageProcessingError(f"Download failed: {exc}") from exc
    finally:
        if http_client is None:
            client.close()


def _download_gs(source: str, destination: Path) -> None:
    from alttext.services.storage import get_storage_service  # local import: GCS only when needed

    try:
        get_storage_service().download_to_filename(source, destination)
    except Exception as exc:
        raise ImageProcessingError(f"GCS download failed: {exc}") from exc
