from __future__ import annotations

import os

from alttext.models import ErrorKind, GenerationResult

from .registry import get_provider

__all__ = [
    "generate_alt_text",
]


async def generate_alt_text(
    source: str | os.PathLike, keywords: str = "", *, api_key: str | None = None
) -> GenerationResult:
    """Facade for the configured vision provider.

    Side-effect free: callers decide whether and where to store the text.
    """

    if not api_key:
        return GenerationResult.fail(ErrorKind.MISSING_API_KEY)
    return await get_provider(api_key).describe(source, keywords)
