"""Glue between the attachment store and the vision facade.

Endpoint handlers and the upload hook share these helpers so that alt text
is always sanitised the same way before it is stored.
"""
from __future__ import annotations

import logging

from alttext.config import get_settings
from alttext.models import Attachment, GenerateResponse
from alttext.services.firebase_db import OPTION_API_KEY, OPTION_AUTO_GENERATE, FirebaseDB
from alttext.services.vision import generate_alt_text
from alttext.utils.text import sanitize_text_field

logger = logging.getLogger(__name__)
settings = get_settings()


def resolve_api_key(store: FirebaseDB) -> str | None:
    """Stored option first, environment second."""

    return store.get_option(OPTION_API_KEY) or settings.openai_api_key


async def generate_and_save(
    store: FirebaseDB,
    attachment_id: str,
    image_url: str,
    keywords: str = "",
) -> GenerateResponse:
    result = await generate_alt_text(image_url, keywords, api_key=resolve_api_key(store))
    if not result.success:
        logger.info(
            "Alt text generation failed for attachment id=%s: %s",
            attachment_id,
            result.error_kind.value if result.error_kind else "unknown_error",
        )
        return GenerateResponse.from_result(result, attachment_id)

    alt_text = sanitize_text_field(result.alt_text)
    store.set_alt_text(attachment_id, alt_text)
    logger.info("Alt text saved for attachment id=%s", attachment_id)

    response = GenerateResponse.from_result(result, attachment_id)
    response.alt_text = alt_text
    return response


async def auto_generate_on_upload(store: FirebaseDB, attachment: Attachment) -> None:
    """Background task run after an attachment is registered."""

    if not store.get_option(OPTION_AUTO_GENERATE, False):
        return
    if not attachment.is_image or attachment.has_alt_text or not attachment.source:
        return

    try:
        response = await generate_and_save(store, attachment.id, attachment.source, attachment.keywords)
    except Exception as exc:  # pragma: no cover
        logger.exception("Auto-generation crashed for attachment id=%s: %s", attachment.id, exc)
        return

    if response.success:
        logger.info("Auto-generated alt text for attachment #%s", attachment.id)
    else:
        logger.warning("Auto-generation skipped for attachment #%s: %s", attachment.id, response.message)
