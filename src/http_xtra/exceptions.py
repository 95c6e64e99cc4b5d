"""Client exceptions."""

from __future__ import annotations

from typing import Mapping


class HttpXtraError(Exception):
    """Base exception for all http_xtra failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers) if headers is not None else {}
        self.request_id = request_id
        self.cause = cause

    @property
    def message(self) -> str:
        return str(self.args[0])


class HttpXtraValidationError(HttpXtraError):
    """Raised when configuration, request bodies or parsed responses are invalid."""


class HttpXtraHTTPError(HttpXtraError):
    """Raised for HTTP non-success responses.

    The message is the raw response body text, untouched.
    """


class HttpXtraAuthError(HttpXtraHTTPError):
    """Raised for 401 and 403 responses that were not resolved by a refresh."""
