"""Firebase Realtime Database helper utilities.

This module wraps the two stores the service depends on:

/attachments/{attachment_id}   media-library records (url, title, alt text, keywords)
/options/{name}                key-value settings (API key, auto-generate flag)

Attachment data is validated with Pydantic models before being written or
returned.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Iterable, List

import firebase_admin
from firebase_admin import credentials, db

from alttext.config import get_settings
from alttext.models import Attachment, ImageRef

logger = logging.getLogger(__name__)

OPTION_API_KEY = "openai_api_key"
OPTION_AUTO_GENERATE = "auto_generate_on_upload"


def _init_firebase() -> None:
    """Initialise the Firebase Admin SDK exactly once."""

    if firebase_admin._apps:  # type: ignore[attr-defined]
        return
    settings = get_settings()
    try:
        if settings.firebase_credentials_json:
            # Accept path or JSON string
            cred_obj: credentials.Base = (
                credentials.Certificate(settings.firebase_credentials_json)
                if settings.firebase_credentials_json.endswith(".json")
                else credentials.Certificate(json.loads(settings.firebase_credentials_json))
            )
        else:
            # Attempt default credentials (useful on Cloud Run with workload identity)
            cred_obj = credentials.ApplicationDefault()

        firebase_admin.initialize_app(
            cred_obj,
            {
                "databaseURL": f"https://{settings.project_id}.firebaseio.com"
                if settings.project_id
                else None,
            },
        )
        logger.info("Firebase Admin SDK initialised.")
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to initialise Firebase Admin SDK: %s", exc)
        raise


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_attachment_dict(data: dict[str, Any]) -> dict[str, Any]:
    attachment = Attachment.model_validate(data)
    return attachment.model_dump(mode="json")


def images_without_alt(attachments: Iterable[Attachment]) -> List[ImageRef]:
    """Image attachments with a URL and an absent or empty alt text, newest first."""

    missing = [a for a in attachments if a.is_image and a.source and not a.has_alt_text]
    missing.sort(key=lambda a: a.uploaded_at, reverse=True)
    return [ImageRef(id=a.id, url=a.url or a.source, title=a.title, keywords=a.keywords) for a in missing]


class FirebaseDB:  # pylint: disable=too-few-public-methods
    """Wrapper around Firebase Realtime Database operations."""

    def __init__(self) -> None:
        self._root = db.reference("/")

    # -------------------------------------------------------------------
    # Attachments
    # -------------------------------------------------------------------

    def _attachments_ref(self):
        return self._root.child("attachments")

    def add_attachment(self, attachment: Attachment | dict[str, Any]) -> Attachment:
        if isinstance(attachment, Attachment):
            data = attachment.model_dump(mode="json")
        else:
            data = dict(attachment)
            data.setdefault("id", "")

        if not data.get("id"):
            # push() returns a reference with a generated key
            ref = self._attachments_ref().push()
            data["id"] = ref.key
        else:
            ref = self._attachments_ref().child(data["id"])

        validated = _validate_attachment_dict(data)
        ref.set(validated)
        logger.debug("Added attachment id=%s", validated["id"])
        return Attachment.model_validate(validated)

    def get_attachment(self, attachment_id: str) -> Attachment | None:
        if not attachment_id:
            return None
        data = self._attachments_ref().child(attachment_id).get()
        if data is None:
            return None
        data.setdefault("id", attachment_id)
        return Attachment.model_validate(_validate_attachment_dict(data))

    def list_attachments(self) -> List[Attachment]:
        raw_items = self._attachments_ref().get() or {}
        items: list[Attachment] = []
        for key, data in raw_items.items():
            data.setdefault("id", key)
            items.append(Attachment.model_validate(_validate_attachment_dict(data)))
        return items

    def list_images_without_alt(self) -> List[ImageRef]:
        return images_without_alt(self.list_attachments())

    def set_alt_text(self, attachment_id: str, alt_text: str) -> None:
        self._attachments_ref().child(attachment_id).update({"alt_text": alt_text})
        logger.debug("Alt text set for attachment id=%s", attachment_id)

    def set_keywords(self, attachment_id: str, keywords: str) -> None:
        self._attachments_ref().child(attachment_id).update({"keywords": keywords})
        logger.debug("Keywords set for attachment id=%s", attachment_id)

    # -------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------

    def get_option(self, name: str, default: Any = None) -> Any:
        value = self._root.child("options").child(name).get()
        return default if value is None else value

    def set_option(self, name: str, value: Any) -> None:
        self._root.child("options").child(name).set(value)
        logger.debug("Option %s updated", name)


@lru_cache()
def get_firebase_db() -> FirebaseDB:  # pragma: no cover
    """Shared instance; the SDK is initialised on first use."""

    _init_firebase()
    return FirebaseDB()
