"""Thin httpx wrapper: base URL, default headers, JSON, parsers and token refresh on 401."""

from .client import AsyncHttpXtraClient, HttpXtraClient
from .exceptions import HttpXtraAuthError, HttpXtraError, HttpXtraHTTPError, HttpXtraValidationError
from .headers import build_url, merge_headers
from .models import JsonBody, JsonValue, TokenPair
from .refresh import async_refresh_with_route, refresh_with_route
from .request import RequestDescriptor

__version__ = "0.1.0"

__all__ = [
    "AsyncHttpXtraClient",
    "HttpXtraAuthError",
    "HttpXtraClient",
    "HttpXtraError",
    "HttpXtraHTTPError",
    "HttpXtraValidationError",
    "JsonBody",
    "JsonValue",
    "RequestDescriptor",
    "TokenPair",
    "async_refresh_with_route",
    "build_url",
    "merge_headers",
    "refresh_with_route",
]
