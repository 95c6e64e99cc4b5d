"""Typed payload models and JSON aliases."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


JsonValue = dict[str, Any] | list[Any] | str | int | float | bool | None
JsonBody = dict[str, Any]


class HttpXtraModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TokenPair(HttpXtraModel):
    """Access/refresh token pair as returned by login and refresh endpoints."""

    access_token: str = Field(validation_alias=AliasChoices("accessToken", "access_token", "token"))
    refresh_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("refreshToken", "refresh_token"),
    )
