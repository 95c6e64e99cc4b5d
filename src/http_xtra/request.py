"""Per-call request description."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .models import JsonBody


Parser = Callable[[Any], Any]


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to (re-)send one call.

    The refresh cycle re-sends the same descriptor, so it is never mutated.
    """

    method: str
    route: str
    headers: Mapping[str, str] | None = None
    body: JsonBody | None = None
    parser: Parser | type | None = None

    @property
    def has_body(self) -> bool:
        return self.body is not None
