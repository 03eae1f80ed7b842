from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

import httpx

from alttext.config import get_settings
from alttext.models import ErrorKind, GenerationResult, TokenUsage
from alttext.services.image_normalizer import ImageProcessingError, normalize

from .base import VisionProvider

logger = logging.getLogger(__name__)
settings = get_settings()

PROMPT = (
    "Generate a concise alt text for this image. Keep it under 200 characters "
    "and focus on the most important visual elements"
)
KEYWORDS_CLAUSE = ". Make sure to incorporate these specific keywords if they are relevant to the image: "

# Remote ``error.type`` (or ``error.code``) -> error kind
_ERROR_TYPES: dict[str, ErrorKind] = {
    "invalid_request_error": ErrorKind.INVALID_REQUEST,
    "authentication_error": ErrorKind.INVALID_API_KEY,
    "permission_error": ErrorKind.PERMISSION_ERROR,
    "rate_limit_error": ErrorKind.RATE_LIMIT,
    "insufficient_quota": ErrorKind.QUOTA_EXCEEDED,
}

_STATUS_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_API_KEY: "Authentication failed. Please check your API key.",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded. Please try again later.",
}


def build_prompt(keywords: str = "") -> str:
    prompt = PROMPT
    if keywords:
        prompt += KEYWORDS_CLAUSE + keywords
    return prompt + ":"


class OpenAIVisionProvider(VisionProvider):
    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or settings.openai_model
        self._url = f"{(base_url or settings.openai_base_url).rstrip('/')}/chat/completions"
        self._timeout = timeout or settings.openai_timeout
        self._transport = transport

    async def describe(self, source: str | os.PathLike, keywords: str = "") -> GenerationResult:
        try:
            image = await asyncio.to_thread(
                normalize,
                source,
                settings.image_max_width,
                settings.image_max_height,
                settings.image_quality,
            )
        except ImageProcessingError as exc:
            logger.warning("Image normalisation failed for %s: %s", source, exc)
            return GenerationResult.fail(ErrorKind.IMAGE_PROCESSING_ERROR)

        payload = {
            "model": self._model,
            "max_tokens": settings.openai_max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_prompt(keywords)},
                        {
                            "type": "image_url",
                            "image_url": {"url": image.data_uri, "detail": settings.image_detail},
                        },
                    ],
                }
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        logger.debug("POST %s (model=%s, image=%s %s)", self._url, self._model, image.mime_type, image.resolution)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
        except httpx.TransportError as exc:
            logger.warning("Vision API transport failure: %s", exc)
            return GenerationResult.fail(ErrorKind.NETWORK_ERROR, f"Network error: {exc}")

        try:
            data: Any = resp.json()
        except ValueError:
            data = None

        if resp.status_code != 200:
            result = _classify_error(resp.status_code, data)
            logger.warning("Vision API error %s: %s (%s)", resp.status_code, result.message, result.error_kind.value)
            return result

        return _parse_completion(data)


def _classify_error(status: int, data: Any) -> GenerationResult:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        remote_message = error.get("message")
        kind = _ERROR_TYPES.get(error.get("type") or "") or _ERROR_TYPES.get(error.get("code") or "")
        if kind is ErrorKind.INVALID_REQUEST:
            return GenerationResult.fail(
                kind, "Invalid request: " + (remote_message or "Please check your configuration.")
            )
        if kind is not None:
            return GenerationResult.fail(kind)
        return GenerationResult.fail(ErrorKind.API_ERROR, remote_message or "Unknown API error occurred.")

    if status == 401:
        kind = ErrorKind.INVALID_API_KEY
    elif status == 429:
        kind = ErrorKind.RATE_LIMIT
    elif status >= 500:
        kind = ErrorKind.SERVER_ERROR
    else:
        kind = ErrorKind.API_ERROR
    return GenerationResult.fail(kind, _STATUS_MESSAGES.get(kind))


def _parse_completion(data: Any) -> GenerationResult:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices:
        return GenerationResult.fail(ErrorKind.INVALID_RESPONSE)

    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content:
        return GenerationResult.fail(ErrorKind.EMPTY_RESPONSE)

    usage = data.get("usage")
    token_usage = TokenUsage.model_validate(usage) if isinstance(usage, dict) else None
    return GenerationResult.ok(content, token_usage)
