"""Header and URL helpers shared by both clients."""

from __future__ import annotations

from typing import Mapping


def normalize_headers(headers: Mapping[str, object] | None) -> dict[str, str]:
    if not headers:
        return {}
    return {str(key): str(value) for key, value in headers.items()}


def merge_headers(base: Mapping[str, str], overlay: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a new mapping of *base* overwritten by *overlay*.

    Header names compare case-insensitively, so an overlay ``authorization``
    replaces a base ``Authorization``. Neither input is modified.
    """
    if not overlay:
        return dict(base)
    clean = normalize_headers(overlay)
    replaced = {key.lower() for key in clean}
    merged = {key: value for key, value in base.items() if key.lower() not in replaced}
    merged.update(clean)
    return merged


def has_header(headers: Mapping[str, str], name: str) -> bool:
    """Case-insensitive key lookup."""
    wanted = name.lower()
    return any(key.lower() == wanted for key in headers)


def build_url(base_url: str, route: str) -> str:
    # Plain concatenation: no escaping and no slash handling.
    return f"{base_url}{route}"
