"""Common capability interface for image update backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from http.cookiejar import DefaultCookiePolicy

import requests

from bk_image_sdk.errors import ImageUpdateError, TransportError
from bk_image_sdk.models import UpdateOutcome, UpdateRequest

logger = logging.getLogger(__name__)


def new_http_session() -> requests.Session:
    """
    Return a session that never stores cookies from responses.

    Cookies reach the remote only through explicitly built ``Cookie`` headers, so
    nothing leaks between invocations that reuse one backend instance.
    """
    session = requests.Session()
    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


class ImageUpdateBackend(ABC):
    name: str = "backend"

    def __init__(self, *, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._session = new_http_session()

    @abstractmethod
    def apply(self, request: UpdateRequest) -> UpdateOutcome:
        """Perform the update, raising an ``ImageUpdateError`` subclass on failure."""

    def update_image_reference(self, request: UpdateRequest) -> UpdateOutcome:
        try:
            return self.apply(request)
        except ImageUpdateError as exc:
            logger.debug("%s backend failed: %s", self.name, exc)
            return UpdateOutcome(
                succeeded=False,
                message=f"{exc.label}: {exc}",
                raw_status=getattr(exc, "status_code", None),
                backend=self.name,
            )

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self._session.request(
                method,
                url,
                timeout=self.timeout,
                allow_redirects=False,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response
