"""Async client for this service's own alt-text endpoints.

Used by the bulk runner and the command-line front ends, which play the
role of the admin UI: they enumerate images, then ask the server to
generate alt text one attachment at a time.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from alttext.models import ErrorKind, GenerateResponse, ImageRef

logger = logging.getLogger(__name__)


class AltTextAPIError(Exception):
    """Raised when an endpoint reply cannot be used."""

    def __init__(self, status: int, message: str, response_json: Optional[dict[str, Any]] = None):
        super().__init__(f"Alt text API error {status}: {message}")
        self.status = status
        self.message = message
        self.response_json = response_json or {}


class AltTextAPIClient:  # pylint: disable=too-few-public-methods
    """Minimal async client for the alt-text service endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        nonce: str,
        role: str,
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"X-AltText-Nonce": nonce, "X-User-Role": role}
        # Server-side generation waits on the vision API, so allow more than its own timeout.
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=self._headers,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_images_without_alt(self) -> list[ImageRef]:
        resp = await self._client.get("/api/alt-text/bulk/images")
        data = _json_or_none(resp)
        if resp.status_code >= 400 or not isinstance(data, dict) or "images" not in data:
            message = (data or {}).get("message") if isinstance(data, dict) else None
            raise AltTextAPIError(resp.status_code, message or "Unknown error", data if isinstance(data, dict) else None)
        return [ImageRef.model_validate(item) for item in data["images"]]

    async def generate_single(self, attachment_id: str) -> GenerateResponse:
        """Bulk-mode generation: the server resolves URL and keywords."""

        resp = await self._client.post("/api/alt-text/bulk/generate", json={"attachment_id": attachment_id})
        return _parse_generate(resp, attachment_id)

    async def generate(self, attachment_id: str, image_url: str, keywords: str = "") -> GenerateResponse:
        payload = {"attachment_id": attachment_id, "image_url": image_url}
        if keywords:
            payload["keywords"] = keywords
        resp = await self._client.post("/api/alt-text/generate", json=payload)
        return _parse_generate(resp, attachment_id)

    async def close(self) -> None:
        await self._client.aclose()


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _parse_generate(resp: httpx.Response, attachment_id: str) -> GenerateResponse:
    # Error replies use the same body shape, so parse regardless of status.
    data = _json_or_none(resp)
    try:
        parsed = GenerateResponse.model_validate(data)
    except ValidationError:
        logger.warning("Unparseable reply (%s) for attachment id=%s", resp.status_code, attachment_id)
        return GenerateResponse.error(ErrorKind.UNKNOWN_ERROR, attachment_id)
    if parsed.attachment_id is None:
        parsed.attachment_id = attachment_id
    return parsed
