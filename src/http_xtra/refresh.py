"""Ready-made refresh callbacks for the usual "POST the refresh token" flow."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

from .models import TokenPair

if TYPE_CHECKING:
    from .client import AsyncHttpXtraClient, HttpXtraClient

logger = logging.getLogger(__name__)


def refresh_with_route(
    route: str,
    *,
    method: str = "POST",
    token_field: str = "refreshToken",
    headers: Mapping[str, str] | None = None,
) -> Callable[["HttpXtraClient", str | None], TokenPair | None]:
    """Build a refresh callback that sends ``{token_field: refresh_token}`` to *route*.

    The response is read as a :class:`TokenPair` and stored with
    ``set_authorization``. Without a stored refresh token the callback does
    nothing, and the retried request goes out with the current credentials.
    """

    def on_refresh(client: "HttpXtraClient", refresh_token: str | None) -> TokenPair | None:
        if refresh_token is None:
            logger.debug("No refresh token stored, skipping refresh")
            return None
        tokens = client.request(method, route, body={token_field: refresh_token}, headers=headers, parser=TokenPair)
        client.set_authorization(tokens.access_token, tokens.refresh_token)
        return tokens

    return on_refresh


def async_refresh_with_route(
    route: str,
    *,
    method: str = "POST",
    token_field: str = "refreshToken",
    headers: Mapping[str, str] | None = None,
) -> Callable[["AsyncHttpXtraClient", str | None], Awaitable[TokenPair | None]]:
    """Coroutine counterpart of :func:`refresh_with_route`."""

    async def on_refresh(client: "AsyncHttpXtraClient", refresh_token: str | None) -> TokenPair | None:
        if refresh_token is None:
            logger.debug("No refresh token stored, skipping refresh")
            return None
        tokens: Any = await client.request(
            method,
            route,
            body={token_field: refresh_token},
            headers=headers,
            parser=TokenPair,
        )
        client.set_authorization(tokens.access_token, tokens.refresh_token)
        return tokens

    return on_refresh
