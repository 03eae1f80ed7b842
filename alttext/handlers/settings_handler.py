"""Service options: the vision API key and the auto-generate flag."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from alttext.config import get_settings
from alttext.services.firebase_db import OPTION_API_KEY, OPTION_AUTO_GENERATE, FirebaseDB, get_firebase_db
from alttext.utils.text import mask_secret, sanitize_text_field

from .guards import NONCE_HEADER, ROLE_HEADER, check_request

router = APIRouter(prefix="/api/settings", tags=["settings"])
settings = get_settings()
logger = logging.getLogger(__name__)

API_KEY_PREFIX = "sk-"


class OptionsView(BaseModel):
    has_api_key: bool
    api_key_hint: str
    auto_generate_on_upload: bool


class OptionsUpdate(BaseModel):
    openai_api_key: str | None = None
    auto_generate_on_upload: bool | None = None


def _view(store: FirebaseDB) -> OptionsView:
    api_key = store.get_option(OPTION_API_KEY, "")
    return OptionsView(
        has_api_key=bool(api_key),
        api_key_hint=mask_secret(api_key),
        auto_generate_on_upload=bool(store.get_option(OPTION_AUTO_GENERATE, False)),
    )


@router.get("", response_model=OptionsView)
async def read_options(
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.manage_roles)
    if denied is not None:
        return denied
    return _view(store)


@router.put("", response_model=OptionsView)
async def update_options(
    body: OptionsUpdate,
    nonce: str | None = Header(None, alias=NONCE_HEADER),
    role: str | None = Header(None, alias=ROLE_HEADER),
    store: FirebaseDB = Depends(get_firebase_db),
):
    denied = check_request(nonce, role, settings.manage_roles)
    if denied is not None:
        return denied

    if body.openai_api_key is not None:
        api_key = sanitize_text_field(body.openai_api_key)
        if api_key and not api_key.startswith(API_KEY_PREFIX):
            # The stored key is left untouched.
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={
                    "error": "invalid_api_key_format",
                    "message": 'Invalid API key format. OpenAI API keys should start with "sk-".',
                },
            )
        store.set_option(OPTION_API_KEY, api_key)
        logger.info("API key %s", "updated" if api_key else "cleared")

    if body.auto_generate_on_upload is not None:
        store.set_option(OPTION_AUTO_GENERATE, body.auto_generate_on_upload)
        logger.info("Auto-generate on upload set to %s", body.auto_generate_on_upload)

    return _view(store)
