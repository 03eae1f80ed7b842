from __future__ import annotations

import base64

from pydantic import BaseModel, Field


class NormalizedImage(BaseModel):
    """Image payload bounded for transmission to a vision API."""

    data: bytes
    mime_type: str
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    resized: bool = False

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def data_uri(self) -> str:
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"
