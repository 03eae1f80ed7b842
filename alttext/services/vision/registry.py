from __future__ import annotations

from alttext.config import get_settings

from .base import VisionProvider
from .openai_provider import OpenAIVisionProvider

_PROVIDERS: dict[str, type[VisionProvider]] = {
    "openai": OpenAIVisionProvider,
}


def get_provider(api_key: str) -> VisionProvider:
    settings = get_settings()
    provider_key = settings.vision_provider.lower()
    if provider_key not in _PROVIDERS:
        raise ValueError(f"Unsupported vision provider: {provider_key}")
    return _PROVIDERS[provider_key](api_key)
