import os

os.environ["API_NONCE"] = "test-nonce"
os.environ["OPENAI_API_KEY"] = ""
os.environ["BULK_DELAY_SECONDS"] = "0"

from datetime import datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from alttext.models import Attachment  # noqa: E402
from alttext.services.firebase_db import images_without_alt  # noqa: E402

HEADERS = {"X-AltText-Nonce": "test-nonce", "X-User-Role": "editor"}
ADMIN_HEADERS = {"X-AltText-Nonce": "test-nonce", "X-User-Role": "administrator"}


class FakeStore:
    """In-memory stand-in for FirebaseDB."""

    def __init__(self) -> None:
        self.attachments: dict[str, Attachment] = {}
        self.options: dict[str, Any] = {}
        self._next = 1

    def add_attachment(self, attachment):
        data = attachment.model_dump() if isinstance(attachment, Attachment) else dict(attachment)
        if not data.get("id"):
            data["id"] = str(self._next)
            self._next += 1
        record = Attachment.model_validate(data)
        self.attachments[record.id] = record
        return record

    def get_attachment(self, attachment_id):
        return self.attachments.get(attachment_id)

    def list_attachments(self):
        return list(self.attachments.values())

    def list_images_without_alt(self):
        return images_without_alt(self.list_attachments())

    def set_alt_text(self, attachment_id, alt_text):
        self.attachments[attachment_id].alt_text = alt_text

    def set_keywords(self, attachment_id, keywords):
        self.attachments[attachment_id].keywords = keywords

    def get_option(self, name, default=None):
        return self.options.get(name, default)

    def set_option(self, name, value):
        self.options[name] = value


@pytest.fixture
def store():
    fake = FakeStore()
    base = datetime(2024, 1, 1, 12, 0, 0)
    fake.add_attachment(
        {"id": "10", "url": "https://media.example.com/cat.jpg", "title": "Cat",
         "mime_type": "image/jpeg", "uploaded_at": base}
    )
    fake.add_attachment(
        {"id": "11", "url": "https://media.example.com/dog.png", "title": "Dog",
         "mime_type": "image/png", "keywords": "dog, park", "uploaded_at": base + timedelta(hours=1)}
    )
    fake.add_attachment(
        {"id": "12", "url": "https://media.example.com/bird.jpg", "title": "Bird",
         "mime_type": "image/jpeg", "alt_text": "A bird on a wire", "uploaded_at": base}
    )
    fake.add_attachment(
        {"id": "13", "url": "https://media.example.com/doc.pdf", "title": "Manual",
         "mime_type": "application/pdf", "uploaded_at": base}
    )
    return fake


@pytest.fixture
def client(store):
    from alttext.main import app
    from alttext.services.firebase_db import get_firebase_db

    app.dependency_overrides[get_firebase_db] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
