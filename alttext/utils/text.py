"""Plain-text sanitising for values written to attachment metadata.

Mirrors what a CMS does to a single-line text field: markup is stripped,
line breaks and tabs become spaces, runs of whitespace collapse, and the
ends are trimmed.
"""
from __future__ import annotations

import re
from urllib.parse import urlparse

_TAG_RE = re.compile(r"<[^>]*>")
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x20\x7f]")
_URL_SCHEMES = ("http", "https")


def sanitize_text_field(value: str | None) -> str:
    """Return *value* reduced to a single trimmed line of plain text."""

    if not value:
        return ""
    text = _TAG_RE.sub("", str(value))
    text = _OCTET_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Return a hint such as ``sk-...abcd`` without leaking the secret."""

    if not value:
        return ""
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:3]}...{value[-visible:]}"


def sanitize_url(value: str | None) -> str:
    """Return *value* trimmed if it is an absolute ``http(s)`` URL, else ``""``."""

    if not value:
        return ""
    url = str(value).strip()
    if _CONTROL_RE.search(url):
        return ""
    parsed = urlparse(url)
    if parsed.scheme.lower() not in _URL_SCHEMES or not parsed.netloc:
        return ""
    return url
