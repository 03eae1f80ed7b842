from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Attachment(BaseModel):
    """A stored media item and the metadata fields this service reads and writes."""

    id: str
    url: str
    title: str = ""
    mime_type: str
    alt_text: str = ""
    keywords: str = ""  # comma-separated hints, may be empty
    gcs_path: str | None = None
    uploaded_at: datetime = Field(default_factory=_utcnow)

    @field_validator("uploaded_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Older records were written without an offset.
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def has_alt_text(self) -> bool:
        return bool(self.alt_text)

    @property
    def source(self) -> str:
        """Where the server reads the image from.

        The bucket object outlives the signed URL handed out at upload time.
        """
        return self.gcs_path or self.url


class ImageRef(BaseModel):
    """Enumeration row and bulk work item."""

    id: str
    url: str
    title: str = ""
    keywords: str = ""

    @property
    def label(self) -> str:
        return self.title or "Untitled"
