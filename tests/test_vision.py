import io
import json

import httpx
import pytest
from PIL import Image

from alttext.models import ErrorKind
from alttext.services.vision import generate_alt_text
from alttext.services.vision.openai_provider import OpenAIVisionProvider, build_prompt


@pytest.fixture
def image_path(tmp_path):
    path = tmp_path / "photo.jpg"
    buf = io.BytesIO()
    Image.new("RGB", (800, 600), (10, 120, 200)).save(buf, format="JPEG")
    path.write_bytes(buf.getvalue())
    return path


def _provider(handler) -> OpenAIVisionProvider:
    return OpenAIVisionProvider("sk-test", transport=httpx.MockTransport(handler))


def _completion(content, usage=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        body["usage"] = usage
    return body


# ── Request shape ─────────────────────────────────────────────────────────────


async def test_request_carries_prompt_and_low_detail_image(image_path):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion("A blue square"))

    await _provider(handler).describe(image_path, "blue, minimal")

    assert seen["auth"] == "Bearer sk-test"
    assert seen["url"].endswith("/chat/completions")
    messages = seen["body"]["messages"]
    assert len(messages) == 1 and messages[0]["role"] == "user"
    text_part, image_part = messages[0]["content"]
    assert text_part["type"] == "text"
    assert "blue, minimal" in text_part["text"]
    assert image_part["type"] == "image_url"
    assert image_part["image_url"]["detail"] == "low"
    assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,")


def test_prompt_mentions_keywords_only_when_given():
    assert "keywords" not in build_prompt("")
    assert build_prompt("").endswith("visual elements:")
    assert build_prompt("red, shoe").endswith("relevant to the image: red, shoe:")


# ── Success ───────────────────────────────────────────────────────────────────


async def test_success_returns_untrimmed_text_and_usage(image_path):
    usage = {"prompt_tokens": 120, "completion_tokens": 14, "total_tokens": 134}

    def handler(request):
        return httpx.Response(200, json=_completion("  A dog running on grass \n", usage))

    result = await _provider(handler).describe(image_path)

    assert result.success is True
    assert result.alt_text == "  A dog running on grass \n"
    assert result.usage.total_tokens == 134


# ── Malformed 200 responses ───────────────────────────────────────────────────


async def test_empty_choices_is_invalid_response(image_path):
    result = await _provider(lambda r: httpx.Response(200, json={"choices": []})).describe(image_path)

    assert result.success is False
    assert result.error_kind is ErrorKind.INVALID_RESPONSE


async def test_missing_choices_is_invalid_response(image_path):
    result = await _provider(lambda r: httpx.Response(200, json={"id": "x"})).describe(image_path)

    assert result.error_kind is ErrorKind.INVALID_RESPONSE


async def test_non_json_body_is_invalid_response(image_path):
    result = await _provider(lambda r: httpx.Response(200, text="<html>")).describe(image_path)

    assert result.error_kind is ErrorKind.INVALID_RESPONSE


async def test_empty_content_is_empty_response(image_path):
    result = await _provider(lambda r: httpx.Response(200, json=_completion(""))).describe(image_path)

    assert result.success is False
    assert result.error_kind is ErrorKind.EMPTY_RESPONSE


# ── Error classification ──────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "status, expected",
    [
        (401, ErrorKind.INVALID_API_KEY),
        (429, ErrorKind.RATE_LIMIT),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (404, ErrorKind.API_ERROR),
    ],
)
async def test_status_fallback_without_error_payload(image_path, status, expected):
    result = await _provider(lambda r: httpx.Response(status, text="oops")).describe(image_path)

    assert result.success is False
    assert result.error_kind is expected
    assert result.message


@pytest.mark.parametrize(
    "error_type, expected",
    [
        ("invalid_request_error", ErrorKind.INVALID_REQUEST),
        ("authentication_error", ErrorKind.INVALID_API_KEY),
        ("permission_error", ErrorKind.PERMISSION_ERROR),
        ("rate_limit_error", ErrorKind.RATE_LIMIT),
        ("insufficient_quota", ErrorKind.QUOTA_EXCEEDED),
        ("something_new", ErrorKind.API_ERROR),
    ],
)
async def test_error_payload_type_wins_over_status(image_path, error_type, expected):
    body = {"error": {"type": error_type, "message": "remote says no"}}

    result = await _provider(lambda r: httpx.Response(400, json=body)).describe(image_path)

    assert result.error_kind is expected


async def test_invalid_request_carries_remote_message(image_path):
    body = {"error": {"type": "invalid_request_error", "message": "Image too large"}}

    result = await _provider(lambda r: httpx.Response(400, json=body)).describe(image_path)

    assert result.message == "Invalid request: Image too large"


async def test_unknown_error_type_carries_remote_message(image_path):
    body = {"error": {"type": "mystery", "message": "Something odd"}}

    result = await _provider(lambda r: httpx.Response(418, json=body)).describe(image_path)

    assert result.error_kind is ErrorKind.API_ERROR
    assert result.message == "Something odd"


async def test_rate_limit_429_with_openai_payload(image_path):
    body = {"error": {"type": "rate_limit_error", "message": "slow down"}}

    result = await _provider(lambda r: httpx.Response(429, json=body)).describe(image_path)

    assert result.error_kind is ErrorKind.RATE_LIMIT
    assert result.message


async def test_transport_failure_is_network_error(image_path):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    result = await _provider(handler).describe(image_path)

    assert result.error_kind is ErrorKind.NETWORK_ERROR
    assert result.message.startswith("Network error:")


async def test_bad_image_is_image_processing_error(tmp_path):
    path = tmp_path / "bad.png"
    path.write_bytes(b"nope")

    def handler(request):  # pragma: no cover - never reached
        raise AssertionError("API must not be called")

    result = await _provider(handler).describe(path)

    assert result.error_kind is ErrorKind.IMAGE_PROCESSING_ERROR


# ── Facade ────────────────────────────────────────────────────────────────────


async def test_missing_api_key_fails_fast(image_path):
    result = await generate_alt_text(image_path, api_key=None)

    assert result.success is False
    assert result.error_kind is ErrorKind.MISSING_API_KEY


async def test_facade_delegates_to_provider(image_path, monkeypatch):
    from alttext.services import vision

    captured = {}

    class StubProvider:
        async def describe(self, source, keywords=""):
            captured["args"] = (source, keywords)
            from alttext.models import GenerationResult

            return GenerationResult.ok("A stub")

    monkeypatch.setattr(vision, "get_provider", lambda api_key: StubProvider())

    result = await generate_alt_text(image_path, "k1", api_key="sk-abc")

    assert result.alt_text == "A stub"
    assert captured["args"] == (image_path, "k1")
