"""Alt-text generation endpoints: single image, bulk enumeration, bulk item."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, status
from pydantic import BaseModel

from alttext.config import get_settings
from alttext.models import ErrorKind, GenerateResponse, ImageRef
from alttext.services.alt_text import generate_and_save
from alttext.services.firebase_db import FirebaseDB, get_firebase_db
from alttext.utils.text import sanitize_text_field, sanitize_url

from .guards import NONCE_HEADER, ROLE_HEADER, check_request, error_response

router = APIRouter(prefix="/api/alt-text", tags=["alt-text"])
settings = get_settings()
logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    attachment_id: str = ""
    image_url: str = ""
    keywords: str = ""


class BulkGenerateRequest(BaseModel):
    attachment_id: str = ""


class ImagesWithoutAltResponse(BaseModel):
    images: list[ImageRef]
    total: int


# ---------------------------------------------------------------------------
# Single image
# ---------------------------------------------------------------------------


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    image_url = sanitize_url(body.image_url)
    attachment_id = body.attachment_id.strip()
    keywords = sanitize_text_field(body.keywords)

    if not image_url:
        return error_response(ErrorKind.MISSING_IMAGE_URL, status.HTTP_400_BAD_REQUEST)
    if not attachment_id:
        return error_response(ErrorKind.MISSING_ATTACHMENT_ID, status.HTTP_400_BAD_REQUEST)

    attachment = store.get_attachment(attachment_id)
    if attachment is None or not attachment.is_image:
        return error_response(ErrorKind.INVALID_ATTACHMENT, status.HTTP_404_NOT_FOUND, attachment_id)

    return await generate_and_save(store, attachment_id, image_url, keywords)


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------


@router.get("/bulk/images", response_model=ImagesWithoutAltResponse)
async def images_without_alt(
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    images = store.list_images_without_alt()
    logger.info("Found %d images without alt text", len(images))
    return ImagesWithoutAltResponse(images=images, total=len(images))


@router.post("/bulk/generate", response_model=GenerateResponse)
async def bulk_generate_single(
    body: BulkGenerateRequest,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    attachment_id = body.attachment_id.strip()
    if not attachment_id:
        return error_response(ErrorKind.MISSING_ATTACHMENT_ID, status.HTTP_400_BAD_REQUEST)

    attachment = store.get_attachment(attachment_id)
    if attachment is None or not attachment.is_image:
        return error_response(ErrorKind.INVALID_ATTACHMENT, status.HTTP_404_NOT_FOUND, attachment_id)
    if not attachment.source:
        return error_response(ErrorKind.MISSING_IMAGE_URL, status.HTTP_400_BAD_REQUEST, attachment_id)

    return await generate_and_save(store, attachment_id, attachment.source, attachment.keywords)
