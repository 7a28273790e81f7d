"""Image update backends and the factory that selects one by name."""

from __future__ import annotations

from typing import Literal

from bk_image_sdk.backends.base import ImageUpdateBackend
from bk_image_sdk.backends.graphql import DEFAULT_GRAPHQL_URL, TokenApiBackend
from bk_image_sdk.backends.session import DEFAULT_WEB_BASE, SessionScrapeBackend
from bk_image_sdk.errors import ConfigurationError

BackendName = Literal["session", "graphql"]

ALLOWED_BACKENDS: tuple[BackendName, ...] = ("session", "graphql")


def build_backend(
    name: str,
    *,
    web_base: str = DEFAULT_WEB_BASE,
    graphql_url: str = DEFAULT_GRAPHQL_URL,
    timeout: float | None = None,
    session_cookie: str | None = None,
    token: str | None = None,
) -> ImageUpdateBackend:
    normalized = name.strip().lower()
    if normalized == "session":
        return SessionScrapeBackend(
            web_base=web_base,
            session_cookie=session_cookie,
            timeout=timeout,
        )
    if normalized == "graphql":
        return TokenApiBackend(token=token, graphql_url=graphql_url, timeout=timeout)
    raise ConfigurationError(f"backend must be one of: {', '.join(ALLOWED_BACKENDS)}")


__all__ = [
    "ALLOWED_BACKENDS",
    "BackendName",
    "ImageUpdateBackend",
    "SessionScrapeBackend",
    "TokenApiBackend",
    "build_backend",
]
