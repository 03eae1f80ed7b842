from __future__ import annotations

import os
from abc import ABC, abstractmethod

from alttext.models import GenerationResult


class VisionProvider(ABC):
    """Abstract interface for a vision-model provider."""

    name: str = "abstract"

    @abstractmethod
    async def describe(self, source: str | os.PathLike, keywords: str = "") -> GenerationResult:
        """Generate alt text for the image at *source*.

        Never raises for expected failures (bad image, transport errors,
        remote API errors); those come back as a failed result. Nothing is
        persisted.
        """
