"""Synchronous and asynchronous clients with one-shot token refresh on 401."""

from __future__ import annotations

import inspect
import json
import logging
import os
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .exceptions import HttpXtraAuthError, HttpXtraHTTPError, HttpXtraValidationError
from .headers import build_url, has_header, merge_headers, normalize_headers
from .models import JsonBody, JsonValue
from .request import Parser, RequestDescriptor
from .security import sanitize_headers, validate_base_url

logger = logging.getLogger(__name__)

RefreshCallback = Callable[["HttpXtraClient", Optional[str]], Any]
AsyncRefreshCallback = Callable[["AsyncHttpXtraClient", Optional[str]], Any]


def _coerce_json_body(body: Any) -> JsonBody | None:
    if body is None:
        return None
    if not isinstance(body, Mapping):
        raise HttpXtraValidationError("request body must be a mapping")
    return dict(body)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _decode_body(response: httpx.Response) -> JsonValue:
    try:
        return json.loads(response.content, parse_constant=_reject_constant)
    except ValueError:
        # Not JSON (plain-text endpoints, empty HEAD bodies): hand back the text.
        return response.text


def _apply_parser(parser: Parser | type | None, value: JsonValue) -> Any:
    if parser is None:
        return value
    if isinstance(parser, type) and issubclass(parser, BaseModel):
        try:
            return parser.model_validate(value)
        except ValidationError as exc:
            raise HttpXtraValidationError(
                f"response body does not match {parser.__name__}",
                body=value,
                cause=exc,
            ) from exc
    return parser(value)


class _BaseHttpXtraClient:
    default_timeout = 30.0
    base_url_env_var = "HTTP_XTRA_BASE_URL"
    access_token_env_var = "HTTP_XTRA_ACCESS_TOKEN"
    _on_refresh: Callable[..., Any] | None = None

    def __init__(
        self,
        base_url: str | None = None,
        *,
        default_headers: Mapping[str, str] | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        is_bearer: bool = True,
        timeout: float = default_timeout,
        allow_http: bool = True,
    ) -> None:
        resolved = base_url or os.getenv(self.base_url_env_var)
        if not resolved:
            raise HttpXtraValidationError(f"base_url is required (or set {self.base_url_env_var})")
        try:
            self._base_url = validate_base_url(resolved, allow_http=allow_http)
        except ValueError as exc:
            raise HttpXtraValidationError(str(exc), cause=exc) from exc
        if timeout <= 0:
            raise HttpXtraValidationError("timeout must be greater than 0")

        self.timeout = float(timeout)
        self._default_headers = normalize_headers(default_headers)
        self._refresh_token = refresh_token
        self._refreshing = False

        token = access_token or os.getenv(self.access_token_env_var)
        if token:
            self.set_authorization(token, refresh_token, is_bearer=is_bearer)

        self._client_kwargs = {
            "timeout": self.timeout,
            "follow_redirects": True,
            "trust_env": False,
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def default_headers(self) -> dict[str, str]:
        return dict(self._default_headers)

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def set_default_headers(self, headers: Mapping[str, str]) -> None:
        """Replace every default header with *headers*."""
        self._replace_default_headers(normalize_headers(headers))

    def _replace_default_headers(self, headers: dict[str, str]) -> None:
        # In place: the client owns this dict for its whole life.
        self._default_headers.clear()
        self._default_headers.update(headers)

    def add_default_headers(self, headers: Mapping[str, str]) -> None:
        """Add *headers* to the defaults, overwriting existing keys."""
        self._replace_default_headers(merge_headers(self._default_headers, headers))

    def set_default_header(self, name: str, value: str) -> None:
        self._replace_default_headers(merge_headers(self._default_headers, {name: value}))

    def remove_default_header(self, name: str) -> None:
        wanted = name.lower()
        self._replace_default_headers({k: v for k, v in self._default_headers.items() if k.lower() != wanted})

    def set_authorization(
        self,
        access_token: str,
        refresh_token: str | None = None,
        *,
        is_bearer: bool = True,
    ) -> None:
        """Store credentials for every following request.

        The ``Authorization`` default header becomes ``Bearer <access_token>``
        (or the bare token when *is_bearer* is false) and the stored refresh
        token is replaced by *refresh_token*. Refresh callbacks should go
        through here.
        """
        self.set_default_header("Authorization", f"Bearer {access_token}" if is_bearer else access_token)
        self._refresh_token = refresh_token

    def clear_authorization(self) -> None:
        self.remove_default_header("Authorization")
        self._refresh_token = None

    def _describe(
        self,
        method: str,
        route: str,
        *,
        body: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        parser: Parser | type | None,
    ) -> RequestDescriptor:
        return RequestDescriptor(
            method=method.upper(),
            route=route,
            headers=normalize_headers(headers) or None,
            body=_coerce_json_body(body),
            parser=parser,
        )

    def _prepare(self, call: RequestDescriptor) -> tuple[str, dict[str, str]]:
        url = build_url(self._base_url, call.route)
        headers = merge_headers(self._default_headers, call.headers)
        if call.has_body and not has_header(headers, "Content-Type"):
            headers["Content-Type"] = "application/json"
        logger.debug("%s %s headers=%s", call.method, url, sanitize_headers(headers))
        return url, headers

    def _should_refresh(self, response: httpx.Response) -> bool:
        return response.status_code == 401 and self._on_refresh is not None and not self._refreshing

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        message = response.content.decode("utf-8", errors="replace")
        kwargs = {
            "status_code": response.status_code,
            "body": message,
            "headers": MappingProxyType(dict(response.headers)),
            "request_id": response.headers.get("x-request-id"),
        }
        if response.status_code in {401, 403}:
            raise HttpXtraAuthError(message, **kwargs)
        raise HttpXtraHTTPError(message, **kwargs)

    @staticmethod
    def _parse_response(response: httpx.Response, parser: Parser | type | None) -> Any:
        return _apply_parser(parser, _decode_body(response))


class HttpXtraClient(_BaseHttpXtraClient):
    """Blocking client.

    Example::

        client = HttpXtraClient("https://api.example.com", on_refresh=refresh_with_route("/refresh"))
        is_up = client.get("/health", parser=lambda value: value == "Up")
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        default_headers: Mapping[str, str] | None = None,
        on_refresh: RefreshCallback | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        is_bearer: bool = True,
        timeout: float = _BaseHttpXtraClient.default_timeout,
        httpx_client: httpx.Client | None = None,
        allow_http: bool = True,
    ) -> None:
        super().__init__(
            base_url,
            default_headers=default_headers,
            access_token=access_token,
            refresh_token=refresh_token,
            is_bearer=is_bearer,
            timeout=timeout,
            allow_http=allow_http,
        )
        self._on_refresh = on_refresh
        self._httpx = httpx_client or httpx.Client(**self._client_kwargs)

    def __enter__(self) -> "HttpXtraClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._httpx.close()

    def request(
        self,
        method: str,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        call = self._describe(method, route, body=body, headers=headers, parser=parser)
        return self._send(call)

    def _send(self, call: RequestDescriptor) -> Any:
        url, headers = self._prepare(call)
        response = self._httpx.request(call.method, url, headers=headers, json=call.body, timeout=self.timeout)
        logger.debug("%s %s -> %s", call.method, url, response.status_code)

        if self._should_refresh(response):
            self._refreshing = True
            try:
                self._refresh()
                return self._send(call)
            finally:
                self._refreshing = False

        self._raise_for_status(response)
        return self._parse_response(response, call.parser)

    def _refresh(self) -> None:
        logger.debug("Unauthorized response, running refresh callback")
        try:
            result = self._on_refresh(self, self._refresh_token)
        except Exception as exc:
            # The original request is retried whatever the callback did.
            logger.warning("Refresh callback failed: %s", exc, exc_info=True)
            return
        if inspect.isawaitable(result):
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise HttpXtraValidationError(
                "on_refresh returned an awaitable; use AsyncHttpXtraClient for coroutine callbacks"
            )

    def get(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return self.request("GET", route, headers=headers, parser=parser)

    def head(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return self.request("HEAD", route, headers=headers, parser=parser)

    def delete(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return self.request("DELETE", route, headers=headers, parser=parser)

    def post(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return self.request("POST", route, body=body, headers=headers, parser=parser)

    def put(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return self.request("PUT", route, body=body, headers=headers, parser=parser)

    def patch(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return self.request("PATCH", route, body=body, headers=headers, parser=parser)


class AsyncHttpXtraClient(_BaseHttpXtraClient):
    """Asynchronous client.

    ``on_refresh`` may be a coroutine function or a plain function; its result
    is awaited when it is awaitable. Concurrent calls share the refresh flag,
    so a call that gets a 401 while another call is refreshing fails instead
    of starting a second refresh. Two calls that both see a 401 before either
    sets the flag will both refresh.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        default_headers: Mapping[str, str] | None = None,
        on_refresh: AsyncRefreshCallback | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        is_bearer: bool = True,
        timeout: float = _BaseHttpXtraClient.default_timeout,
        httpx_client: httpx.AsyncClient | None = None,
        allow_http: bool = True,
    ) -> None:
        super().__init__(
            base_url,
            default_headers=default_headers,
            access_token=access_token,
            refresh_token=refresh_token,
            is_bearer=is_bearer,
            timeout=timeout,
            allow_http=allow_http,
        )
        self._on_refresh = on_refresh
        self._httpx = httpx_client or httpx.AsyncClient(**self._client_kwargs)

    async def __aenter__(self) -> "AsyncHttpXtraClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._httpx.aclose()

    async def request(
        self,
        method: str,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        call = self._describe(method, route, body=body, headers=headers, parser=parser)
        return await self._send(call)

    async def _send(self, call: RequestDescriptor) -> Any:
        url, headers = self._prepare(call)
        response = await self._httpx.request(call.method, url, headers=headers, json=call.body, timeout=self.timeout)
        logger.debug("%s %s -> %s", call.method, url, response.status_code)

        if self._should_refresh(response):
            self._refreshing = True
            try:
                await self._refresh()
                return await self._send(call)
            finally:
                self._refreshing = False

        self._raise_for_status(response)
        return self._parse_response(response, call.parser)

    async def _refresh(self) -> None:
        logger.debug("Unauthorized response, running refresh callback")
        try:
            result = self._on_refresh(self, self._refresh_token)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("Refresh callback failed: %s", exc, exc_info=True)

    async def get(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return await self.request("GET", route, headers=headers, parser=parser)

    async def head(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return await self.request("HEAD", route, headers=headers, parser=parser)

    async def delete(self, route: str, *, headers: Mapping[str, str] | None = None, parser: Parser | type | None = None) -> Any:
        return await self.request("DELETE", route, headers=headers, parser=parser)

    async def post(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return await self.request("POST", route, body=body, headers=headers, parser=parser)

    async def put(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return await self.request("PUT", route, body=body, headers=headers, parser=parser)

    async def patch(
        self,
        route: str,
        *,
        body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        parser: Parser | type | None = None,
    ) -> Any:
        return await self.request("PATCH", route, body=body, headers=headers, parser=parser)
