"""Settings-page backend: scrape an anti-forgery token, then PATCH the form."""

from __future__ import annotations

import logging
import os
from urllib.parse import quote, urlencode

import requests

from bk_image_sdk.backends.base import ImageUpdateBackend
from bk_image_sdk.classify import (
    ResponseClass,
    classify_update_response,
    collate_cookies,
    extract_authenticity_token,
)
from bk_image_sdk.errors import SessionAcquisitionError, UpdateRejectedError
from bk_image_sdk.models import SessionCredential, UpdateOutcome, UpdateRequest

logger = logging.getLogger(__name__)

DEFAULT_WEB_BASE = "https://buildkite.com"
SESSION_COOKIE_ENV_VAR = "BUILDKITE_SESSION_COOKIE"
USER_AGENT = "bk-image-sdk/0.1"

PROFILE_FIELD = "cluster_queue[namespace_base_image_profile_id]"
IMAGE_REF_FIELD = "cluster_queue[namespace_base_image_ref]"
COMMIT_VALUE = "Save settings"

_BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
}


def set_cookie_values(response: requests.Response) -> list[str]:
    """Return every ``Set-Cookie`` header of ``response`` as a separate value."""
    return list(response.raw.headers.getlist("Set-Cookie"))


def build_update_form(*, authenticity_token: str, image_reference: str) -> str:
    # An explicit empty profile id clears the dropdown so the custom ref applies.
    return urlencode(
        [
            ("authenticity_token", authenticity_token),
            (PROFILE_FIELD, ""),
            (IMAGE_REF_FIELD, image_reference),
            ("commit", COMMIT_VALUE),
        ]
    )


class SessionScrapeBackend(ImageUpdateBackend):
    name = "session"

    def __init__(
        self,
        *,
        web_base: str = DEFAULT_WEB_BASE,
        session_cookie: str | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.web_base = web_base
        if session_cookie is None:
            env_cookie = os.getenv(SESSION_COOKIE_ENV_VAR)
            session_cookie = env_cookie.strip() or None if env_cookie else None
        self._seed_cookie = session_cookie

    def _queue_url(self, request: UpdateRequest, action: str) -> str:
        return "/".join(
            [
                self.web_base.rstrip("/"),
                quote(request.organization_slug, safe=""),
                "clusters",
                quote(request.cluster_id, safe=""),
                "queues",
                quote(request.queue_id, safe=""),
                action,
            ]
        )

    def base_image_url(self, request: UpdateRequest) -> str:
        return self._queue_url(request, "base_image")

    def update_url(self, request: UpdateRequest) -> str:
        return self._queue_url(request, "update_base_image_profile")

    def acquire_session(self, request: UpdateRequest) -> SessionCredential:
        headers = dict(_BROWSER_HEADERS)
        if self._seed_cookie:
            headers["Cookie"] = self._seed_cookie
        response = self._send("GET", self.base_image_url(request), headers=headers)
        if not 200 <= response.status_code < 400:
            raise SessionAcquisitionError(
                f"settings page returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            token = extract_authenticity_token(response.text)
        except SessionAcquisitionError as exc:
            exc.status_code = response.status_code
            raise
        cookie_header = collate_cookies(set_cookie_values(response))
        logger.debug("anti-forgery token extracted")
        return SessionCredential(authenticity_token=token, cookie_header=cookie_header)

    def submit_update(
        self,
        request: UpdateRequest,
        credential: SessionCredential,
    ) -> tuple[ResponseClass, int]:
        body = build_update_form(
            authenticity_token=credential.authenticity_token,
            image_reference=request.image_reference,
        )
        encoded = body.encode("utf-8")
        cookie_header = "; ".join(
            part for part in (self._seed_cookie, credential.cookie_header) if part
        )
        headers = dict(_BROWSER_HEADERS)
        headers.update(
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "Content-Length": str(len(encoded)),
                "Cookie": cookie_header,
                "X-Requested-With": "XMLHttpRequest",
            }
        )
        response = self._send("PATCH", self.update_url(request), data=encoded, headers=headers)

        verdict = classify_update_response(response.status_code, response.text)
        if verdict is ResponseClass.FAILURE:
            if response.status_code >= 400 or response.status_code < 200:
                message = f"HTTP {response.status_code}: {response.reason}"
            else:
                message = "server returned an error in the response"
            raise UpdateRejectedError(
                message,
                status_code=response.status_code,
                body=response.text,
            )
        if verdict is ResponseClass.AMBIGUOUS_SUCCESS:
            logger.warning(
                "HTTP %s without a confirmation message; assuming the update was applied",
                response.status_code,
            )
        return verdict, response.status_code

    def apply(self, request: UpdateRequest) -> UpdateOutcome:
        credential = self.acquire_session(request)
        verdict, status_code = self.submit_update(request, credential)
        message = f"base image for queue {request.queue_id} set to {request.image_reference}"
        if verdict is ResponseClass.AMBIGUOUS_SUCCESS:
            message += " (no confirmation message in response)"
        return UpdateOutcome(
            succeeded=True,
            message=message,
            raw_status=status_code,
            backend=self.name,
            image_reference=request.image_reference,
        )
