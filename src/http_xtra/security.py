"""Base URL validation and header redaction."""

from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse


SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "x-api-key",
}

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with credential values redacted for log records."""
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def validate_base_url(url: str, *, allow_http: bool = True) -> str:
    """Check that *url* has an http(s) scheme and a host, and return it unchanged.

    With ``allow_http=False`` a plain ``http`` URL is only accepted for loopback
    hosts. No normalization happens here: routes are appended verbatim.
    """
    if "\x00" in url:
        raise ValueError("Invalid base_url")
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("base_url must include scheme and host")
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base_url scheme: {parsed.scheme}")
    if parsed.scheme == "http" and not allow_http:
        if (parsed.hostname or "").lower() not in LOOPBACK_HOSTS:
            raise ValueError("Non-HTTPS base_url is not allowed without allow_http=True")
    return url
