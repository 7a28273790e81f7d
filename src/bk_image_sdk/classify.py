"""Parsing and pass/fail classification of settings-page and GraphQL responses.

Nothing in this module performs network I/O.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

from bk_image_sdk.errors import ImageUpdateError, MutationError, SessionAcquisitionError

AUTHENTICITY_TOKEN_RE = re.compile(r'name="authenticity_token"[^>]*value="([^"]+)"')

POSITIVE_PHRASES = ("Agent image has been updated", "success")
NEGATIVE_PHRASES = ("error", "could not be updated")

TOKEN_NOT_FOUND_MESSAGE = (
    "anti-forgery token not found — caller is not authenticated or lacks access "
    "to this resource"
)
NO_DATA_MESSAGE = "no data returned"


class ResponseClass(Enum):
    SUCCESS = "success"
    AMBIGUOUS_SUCCESS = "ambiguous-success"
    FAILURE = "failure"

    @property
    def succeeded(self) -> bool:
        return self is not ResponseClass.FAILURE


def extract_authenticity_token(html: str) -> str:
    """Return the value of the first ``authenticity_token`` input in ``html``."""
    match = AUTHENTICITY_TOKEN_RE.search(html)
    if not match:
        raise SessionAcquisitionError(TOKEN_NOT_FOUND_MESSAGE)
    return match.group(1)


def collate_cookies(set_cookie_values: Iterable[str]) -> str:
    """
    Fold ``Set-Cookie`` values into one outbound ``Cookie`` header.

    Attributes after the first ``;`` (Path, Expires, HttpOnly...) are dropped and
    the remaining ``name=value`` pairs are joined in their original order.
    """
    return "; ".join(value.split(";", 1)[0] for value in set_cookie_values)


def classify_update_response(status_code: int, body: str) -> ResponseClass:
    if status_code < 200 or status_code >= 400:
        return ResponseClass.FAILURE

    is_redirect = 300 <= status_code < 400
    if is_redirect or any(phrase in body for phrase in POSITIVE_PHRASES):
        return ResponseClass.SUCCESS
    if any(phrase in body for phrase in NEGATIVE_PHRASES):
        return ResponseClass.FAILURE
    # The settings page redirects on success; a bare 2xx is assumed to be fine.
    return ResponseClass.AMBIGUOUS_SUCCESS


def graphql_error_messages(payload: dict[str, Any]) -> list[str]:
    errors = payload.get("errors")
    if not errors:
        return []
    if not isinstance(errors, list):
        return [str(errors)]
    messages: list[str] = []
    for item in errors:
        if isinstance(item, dict) and item.get("message") is not None:
            messages.append(str(item["message"]))
        else:
            messages.append(str(item))
    return messages


def validate_structured_response(
    payload: dict[str, Any],
    path: Sequence[str],
    *,
    error_cls: type[ImageUpdateError] = MutationError,
    missing_message: str = NO_DATA_MESSAGE,
) -> dict[str, Any]:
    """
    Return the object found under ``data`` along ``path``.

    A non-empty ``errors`` collection always wins, even when ``data`` is also
    populated. A missing or null step along ``path`` raises ``error_cls`` with
    ``missing_message``.
    """
    messages = graphql_error_messages(payload)
    if messages:
        joined = ", ".join(messages)
        if error_cls is MutationError:
            raise MutationError(joined, messages=messages)
        raise error_cls(joined)

    node: Any = payload.get("data")
    for key in path:
        if not isinstance(node, dict):
            node = None
            break
        node = node.get(key)
    if not isinstance(node, dict):
        raise error_cls(missing_message)
    return node
