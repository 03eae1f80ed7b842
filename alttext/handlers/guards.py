"""Request guards shared by the HTTP handlers.

The fronting host authenticates the user and forwards two headers: the
per-session nonce and the user's role. Guards return a ready-made JSON
reply on failure so every endpoint answers in the ``GenerateResponse``
shape, or ``None`` when the request may proceed.
"""
from __future__ import annotations

import hmac
import logging
from typing import Iterable

from fastapi import status
from fastapi.responses import JSONResponse

from alttext.config import get_settings
from alttext.models import ErrorKind, GenerateResponse

settings = get_settings()
logger = logging.getLogger(__name__)

NONCE_HEADER = "X-AltText-Nonce"
ROLE_HEADER = "X-User-Role"


def error_response(
    kind: ErrorKind,
    status_code: int,
    attachment_id: str | None = None,
) -> JSONResponse:
    body = GenerateResponse.error(kind, attachment_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def check_request(
    nonce: str | None,
    role: str | None,
    allowed_roles: Iterable[str],
) -> JSONResponse | None:
    if not nonce or not hmac.compare_digest(nonce, settings.api_nonce):
        logger.warning("Rejected request with bad nonce")
        return error_response(ErrorKind.INVALID_NONCE, status.HTTP_403_FORBIDDEN)
    if not role or role not in set(allowed_roles):
        logger.warning("Rejected request for role %r", role)
        return error_response(ErrorKind.INSUFFICIENT_PERMISSIONS, status.HTTP_403_FORBIDDEN)
    return None
