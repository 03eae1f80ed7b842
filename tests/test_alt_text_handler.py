import pytest

from alttext.models import ErrorKind, GenerationResult, TokenUsage
from alttext.services import alt_text

from conftest import HEADERS


@pytest.fixture
def fake_generate(monkeypatch):
    calls = []
    outcome = {"result": GenerationResult.ok("  A <b>cat</b> sleeping\n on a sofa  ", TokenUsage(total_tokens=42))}

    async def _generate(source, keywords="", *, api_key=None):
        calls.append({"source": source, "keywords": keywords, "api_key": api_key})
        return outcome["result"]

    monkeypatch.setattr(alt_text, "generate_alt_text", _generate)
    return calls, outcome


# ── Single image ──────────────────────────────────────────────────────────────


def test_generate_saves_sanitized_alt_text(client, store, fake_generate):
    calls, _ = fake_generate
    store.set_option("openai_api_key", "sk-stored")

    resp = client.post(
        "/api/alt-text/generate",
        json={"attachment_id": "10", "image_url": "https://media.example.com/cat.jpg", "keywords": " cat, <i>sofa</i> "},
        headers=HEADERS,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["alt_text"] == "A cat sleeping on a sofa"
    assert body["attachment_id"] == "10"
    assert body["token_usage"]["total_tokens"] == 42
    assert store.get_attachment("10").alt_text == "A cat sleeping on a sofa"
    assert calls[0]["keywords"] == "cat, sofa"
    assert calls[0]["api_key"] == "sk-stored"


def test_generate_failure_is_reported_and_not_saved(client, store, fake_generate):
    _, outcome = fake_generate
    outcome["result"] = GenerationResult.fail(ErrorKind.RATE_LIMIT)

    resp = client.post(
        "/api/alt-text/generate",
        json={"attachment_id": "10", "image_url": "https://media.example.com/cat.jpg"},
        headers=HEADERS,
    )

    body = resp.json()
    assert resp.status_code == 200
    assert body["success"] is False
    assert body["error_kind"] == "rate_limit"
    assert body["message"]
    assert store.get_attachment("10").alt_text == ""


def test_missing_api_key_propagates(client, store):
    resp = client.post(
        "/api/alt-text/generate",
        json={"attachment_id": "10", "image_url": "https://media.example.com/cat.jpg"},
        headers=HEADERS,
    )

    assert resp.json()["error_kind"] == "missing_api_key"


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({}, "invalid_nonce"),
        ({"X-AltText-Nonce": "wrong", "X-User-Role": "editor"}, "invalid_nonce"),
        ({"X-AltText-Nonce": "test-nonce"}, "insufficient_permissions"),
        ({"X-AltText-Nonce": "test-nonce", "X-User-Role": "subscriber"}, "insufficient_permissions"),
    ],
)
def test_guards_reject_before_generation(client, fake_generate, headers, expected):
    calls, _ = fake_generate

    resp = client.post(
        "/api/alt-text/generate",
        json={"attachment_id": "10", "image_url": "https://media.example.com/cat.jpg"},
        headers=headers,
    )

    assert resp.status_code == 403
    assert resp.json()["error_kind"] == expected
    assert calls == []


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"attachment_id": "10"}, "missing_image_url"),
        ({"image_url": "https://media.example.com/cat.jpg"}, "missing_attachment_id"),
        ({"attachment_id": "99", "image_url": "https://media.example.com/x.jpg"}, "invalid_attachment"),
        ({"attachment_id": "13", "image_url": "https://media.example.com/doc.pdf"}, "invalid_attachment"),
    ],
)
def test_request_validation_errors(client, fake_generate, payload, expected):
    calls, _ = fake_generate

    resp = client.post("/api/alt-text/generate", json=payload, headers=HEADERS)

    assert resp.status_code in (400, 404)
    assert resp.json()["success"] is False
    assert resp.json()["error_kind"] == expected
    assert calls == []


# ── Bulk enumeration ──────────────────────────────────────────────────────────


def test_enumeration_lists_images_without_alt_newest_first(client):
    resp = client.get("/api/alt-text/bulk/images", headers=HEADERS)

    body = resp.json()
    assert resp.status_code == 200
    assert body["total"] == 2
    assert [img["id"] for img in body["images"]] == ["11", "10"]
    assert set(body["images"][0]) >= {"id", "url", "title"}


def test_enumeration_never_returns_non_empty_alt(client, store):
    store.set_alt_text("10", " ")

    ids = [img["id"] for img in client.get("/api/alt-text/bulk/images", headers=HEADERS).json()["images"]]

    assert ids == ["11"]


def test_enumeration_requires_nonce(client):
    resp = client.get("/api/alt-text/bulk/images", headers={"X-User-Role": "editor"})

    assert resp.json()["error_kind"] == "invalid_nonce"


# ── Bulk single ───────────────────────────────────────────────────────────────


def test_bulk_generate_uses_stored_url_and_keywords(client, store, fake_generate):
    calls, _ = fake_generate

    resp = client.post("/api/alt-text/bulk/generate", json={"attachment_id": "11"}, headers=HEADERS)

    body = resp.json()
    assert body["success"] is True
    assert body["attachment_id"] == "11"
    assert calls[0]["source"] == "https://media.example.com/dog.png"
    assert calls[0]["keywords"] == "dog, park"
    assert store.get_attachment("11").alt_text == "A cat sleeping on a sofa"


def test_bulk_generate_failure_echoes_attachment_id(client, fake_generate):
    _, outcome = fake_generate
    outcome["result"] = GenerationResult.fail(ErrorKind.SERVER_ERROR)

    body = client.post("/api/alt-text/bulk/generate", json={"attachment_id": "10"}, headers=HEADERS).json()

    assert body["success"] is False
    assert body["error_kind"] == "server_error"
    assert body["attachment_id"] == "10"


def test_bulk_generate_requires_attachment_id(client):
    body = client.post("/api/alt-text/bulk/generate", json={}, headers=HEADERS).json()

    assert body["error_kind"] == "missing_attachment_id"


def test_bulk_generate_rejects_non_images(client):
    body = client.post("/api/alt-text/bulk/generate", json={"attachment_id": "13"}, headers=HEADERS).json()

    assert body["error_kind"] == "invalid_attachment"


@pytest.mark.parametrize(
    "image_url",
    ["/etc/passwd", "file:///etc/passwd", "../private/secret.png", "ftp://media.example.com/cat.jpg", "https://"],
)
def test_generate_refuses_non_http_image_urls(client, fake_generate, image_url):
    calls, _ = fake_generate

    resp = client.post(
        "/api/alt-text/generate",
        json={"attachment_id": "10", "image_url": image_url},
        headers=HEADERS,
    )

    assert resp.status_code == 400
    assert resp.json()["error_kind"] == "missing_image_url"
    assert calls == []


def test_bulk_generate_reads_uploads_from_the_bucket(client, store, fake_generate):
    calls, _ = fake_generate
    store.add_attachment(
        {
            "id": "20",
            "url": "https://storage.googleapis.com/b/media/k.jpg?X-Goog-Expires=604800",
            "gcs_path": "gs://alttext-media/media/k.jpg",
            "mime_type": "image/jpeg",
        }
    )

    body = client.post("/api/alt-text/bulk/generate", json={"attachment_id": "20"}, headers=HEADERS).json()

    assert body["success"] is True
    assert calls[0]["source"] == "gs://alttext-media/media/k.jpg"


def test_enumeration_includes_bucket_only_images(client, store):
    store.add_attachment({"id": "21", "url": "", "gcs_path": "gs://alttext-media/media/z.jpg", "mime_type": "image/jpeg"})

    images = client.get("/api/alt-text/bulk/images", headers=HEADERS).json()["images"]

    assert images[0] == {"id": "21", "url": "gs://alttext-media/media/z.jpg", "title": "", "keywords": ""}


def test_enumeration_orders_new_uploads_after_older_records(client, store):
    created = client.post(
        "/api/attachments",
        json={"url": "https://media.example.com/new.jpg", "mime_type": "image/jpeg", "title": "New"},
        headers=HEADERS,
    ).json()

    ids = [img["id"] for img in client.get("/api/alt-text/bulk/images", headers=HEADERS).json()["images"]]

    assert ids == [created["id"], "11", "10"]
    assert created["uploaded_at"].endswith(("Z", "+00:00"))
