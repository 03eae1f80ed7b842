"""Attachment endpoints: registration, upload, keyword hints.

Registering or uploading an image schedules alt-text generation in the
background when the ``auto_generate_on_upload`` option is on.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, HTTPException, UploadFile, status
from pydantic import BaseModel

from alttext.config import get_settings
from alttext.models import Attachment
from alttext.services.alt_text import auto_generate_on_upload
from alttext.services.firebase_db import FirebaseDB, get_firebase_db
from alttext.services.storage import StorageService, get_storage_service
from alttext.utils.text import sanitize_text_field, sanitize_url

from .guards import NONCE_HEADER, ROLE_HEADER, check_request

router = APIRouter(prefix="/api/attachments", tags=["attachments"])
settings = get_settings()
logger = logging.getLogger(__name__)


class AttachmentCreate(BaseModel):
    url: str
    mime_type: str
    title: str = ""
    keywords: str = ""
    alt_text: str = ""


class KeywordsUpdate(BaseModel):
    keywords: str = ""


@router.post("", response_model=Attachment, status_code=status.HTTP_201_CREATED)
async def register_attachment(
    body: AttachmentCreate,
    background_tasks: BackgroundTasks,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    url = sanitize_url(body.url)
    if not url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="url must be an absolute http(s) URL")

    attachment = store.add_attachment(
        {
            "url": url,
            "mime_type": body.mime_type,
            "title": sanitize_text_field(body.title),
            "keywords": sanitize_text_field(body.keywords),
            "alt_text": sanitize_text_field(body.alt_text),
            "uploaded_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    background_tasks.add_task(auto_generate_on_upload, store, attachment)
    return attachment


@router.post("/upload", response_model=Attachment, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    background_tasks: BackgroundTasks,
    image: UploadFile = File(...),
    title: str = Form(""),
    keywords: str = Form(""),
    compress: bool = Form(True),
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
    storage_service: StorageService = Depends(get_storage_service),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    raw = await image.read()
    content_type = image.content_type or "application/octet-stream"
    key = uuid.uuid4().hex
    try:
        gs_path, url, final_content_type = storage_service.upload_image(
            raw, key, content_type=content_type, compress=compress
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    attachment = store.add_attachment(
        {
            "url": url,
            "mime_type": final_content_type,
            "title": sanitize_text_field(title or image.filename or ""),
            "keywords": sanitize_text_field(keywords),
            "gcs_path": gs_path,
            "uploaded_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    logger.info("Uploaded attachment id=%s to %s", attachment.id, gs_path)
    background_tasks.add_task(auto_generate_on_upload, store, attachment)
    return attachment


@router.get("/{attachment_id}", response_model=Attachment)
async def get_attachment(
    attachment_id: str,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    attachment = store.get_attachment(attachment_id)
    if attachment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
    return attachment


@router.put("/{attachment_id}/keywords", response_model=Attachment)
async def update_keywords(
    attachment_id: str,
    body: KeywordsUpdate,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.upload_roles)
    if denied is not None:
        return denied

    if store.get_attachment(attachment_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
    store.set_keywords(attachment_id, sanitize_text_field(body.keywords))
    return store.get_attachment(attachment_id)
