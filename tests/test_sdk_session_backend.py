from __future__ import annotations

import types
from urllib.parse import parse_qsl

import pytest
import requests
from urllib3 import HTTPHeaderDict

from bk_image_sdk.backends.session import (
    SessionScrapeBackend,
    build_update_form,
    set_cookie_values,
)
from bk_image_sdk.errors import SessionAcquisitionError, TransportError, UpdateRejectedError
from bk_image_sdk.models import UpdateRequest

SETTINGS_PAGE = '<form><input type="hidden" name="authenticity_token" value="abc123"></form>'


def _response(status_code: int, text: str = "", *, cookies=(), reason: str = "") -> object:
    headers = HTTPHeaderDict()
    for cookie in cookies:
        headers.add("Set-Cookie", cookie)
    return types.SimpleNamespace(
        status_code=status_code,
        text=text,
        reason=reason,
        headers=headers,
        raw=types.SimpleNamespace(headers=headers),
    )


def _request() -> UpdateRequest:
    return UpdateRequest(
        organization_slug="acme",
        cluster_id="c-1",
        queue_id="q-1",
        image_reference="registry.example.com/img:v2",
    )


@pytest.fixture
def backend(monkeypatch) -> SessionScrapeBackend:
    monkeypatch.delenv("BUILDKITE_SESSION_COOKIE", raising=False)
    return SessionScrapeBackend(web_base="https://buildkite.example", timeout=5.0)


def _install(monkeypatch, backend: SessionScrapeBackend, responses: list) -> list[dict]:
    calls: list[dict] = []
    queue = iter(responses)

    def fake_request(method, url, **kwargs):  # noqa: ANN001
        calls.append({"method": method, "url": url, **kwargs})
        item = next(queue)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(backend._session, "request", fake_request)
    return calls


def test_scrape_flow_succeeds_on_redirect(monkeypatch, backend) -> None:
    calls = _install(
        monkeypatch,
        backend,
        [
            _response(200, SETTINGS_PAGE, cookies=["a=1; path=/; HttpOnly", "b=2; secure"]),
            _response(302, ""),
        ],
    )

    outcome = backend.update_image_reference(_request())

    assert outcome.succeeded is True
    assert outcome.raw_status == 302
    assert outcome.backend == "session"
    assert "registry.example.com/img:v2" in outcome.message

    get_call, patch_call = calls
    assert get_call["method"] == "GET"
    assert get_call["url"] == "https://buildkite.example/acme/clusters/c-1/queues/q-1/base_image"
    assert get_call["allow_redirects"] is False
    assert get_call["timeout"] == 5.0
    assert "Cookie" not in get_call["headers"]

    assert patch_call["method"] == "PATCH"
    assert patch_call["url"] == (
        "https://buildkite.example/acme/clusters/c-1/queues/q-1/update_base_image_profile"
    )
    headers = patch_call["headers"]
    assert headers["Cookie"] == "a=1; b=2"
    assert headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert headers["X-Requested-With"] == "XMLHttpRequest"
    assert headers["Content-Length"] == str(len(patch_call["data"]))

    form = parse_qsl(patch_call["data"].decode("utf-8"), keep_blank_values=True)
    assert form == [
        ("authenticity_token", "abc123"),
        ("cluster_queue[namespace_base_image_profile_id]", ""),
        ("cluster_queue[namespace_base_image_ref]", "registry.example.com/img:v2"),
        ("commit", "Save settings"),
    ]


def test_confirmation_phrase_is_success(monkeypatch, backend) -> None:
    _install(
        monkeypatch,
        backend,
        [_response(200, SETTINGS_PAGE), _response(200, "Agent image has been updated")],
    )
    outcome = backend.update_image_reference(_request())
    assert outcome.succeeded is True
    assert "no confirmation" not in outcome.message


def test_ambiguous_body_is_success_and_flagged(monkeypatch, backend, caplog) -> None:
    _install(monkeypatch, backend, [_response(200, SETTINGS_PAGE), _response(200, "<html/>")])
    with caplog.at_level("WARNING", logger="bk_image_sdk"):
        outcome = backend.update_image_reference(_request())
    assert outcome.succeeded is True
    assert "no confirmation message" in outcome.message
    assert "assuming the update was applied" in caplog.text


def test_no_cookies_sends_empty_cookie_header(monkeypatch, backend) -> None:
    calls = _install(monkeypatch, backend, [_response(200, SETTINGS_PAGE), _response(302)])
    backend.update_image_reference(_request())
    assert calls[1]["headers"]["Cookie"] == ""


def test_seed_cookie_precedes_collated_cookies(monkeypatch) -> None:
    monkeypatch.setenv("BUILDKITE_SESSION_COOKIE", "_buildkite_sess=seed")
    backend = SessionScrapeBackend()
    calls = _install(
        monkeypatch,
        backend,
        [_response(200, SETTINGS_PAGE, cookies=["a=1; path=/"]), _response(302)],
    )
    backend.update_image_reference(_request())
    assert calls[0]["headers"]["Cookie"] == "_buildkite_sess=seed"
    assert calls[1]["headers"]["Cookie"] == "_buildkite_sess=seed; a=1"
    assert calls[0]["url"].startswith("https://buildkite.com/")


def test_missing_token_fails_without_patch(monkeypatch, backend) -> None:
    calls = _install(monkeypatch, backend, [_response(200, "<html>Sign in</html>")])
    outcome = backend.update_image_reference(_request())
    assert outcome.succeeded is False
    assert outcome.message.startswith("session error: anti-forgery token not found")
    assert outcome.raw_status == 200
    assert len(calls) == 1


def test_settings_page_http_error(monkeypatch, backend) -> None:
    _install(monkeypatch, backend, [_response(404, "Not Found")])
    with pytest.raises(SessionAcquisitionError) as excinfo:
        backend.apply(_request())
    assert excinfo.value.status_code == 404


def test_settings_page_redirect_to_login(monkeypatch, backend) -> None:
    _install(monkeypatch, backend, [_response(302, "")])
    with pytest.raises(SessionAcquisitionError):
        backend.apply(_request())


def test_rejected_status(monkeypatch, backend) -> None:
    _install(
        monkeypatch,
        backend,
        [_response(200, SETTINGS_PAGE), _response(422, "bad", reason="Unprocessable Entity")],
    )
    with pytest.raises(UpdateRejectedError) as excinfo:
        backend.apply(_request())
    assert excinfo.value.status_code == 422
    assert str(excinfo.value) == "HTTP 422: Unprocessable Entity"


def test_rejected_body(monkeypatch, backend) -> None:
    _install(
        monkeypatch,
        backend,
        [_response(200, SETTINGS_PAGE), _response(200, "Base image could not be updated")],
    )
    outcome = backend.update_image_reference(_request())
    assert outcome.succeeded is False
    assert outcome.raw_status == 200
    assert outcome.message == "update rejected: server returned an error in the response"


def test_connection_failure_is_transport_error(monkeypatch, backend) -> None:
    _install(monkeypatch, backend, [requests.ConnectionError("connection refused")])
    with pytest.raises(TransportError, match="connection refused"):
        backend.apply(_request())

    _install(monkeypatch, backend, [requests.Timeout("read timed out")])
    outcome = backend.update_image_reference(_request())
    assert outcome.succeeded is False
    assert outcome.message.startswith("transport error: GET ")


def test_path_segments_are_quoted(backend) -> None:
    request = UpdateRequest(
        organization_slug="acme",
        cluster_id="c/1",
        queue_id="q 1",
        image_reference="img:v1",
    )
    assert backend.base_image_url(request) == (
        "https://buildkite.example/acme/clusters/c%2F1/queues/q%201/base_image"
    )


def test_build_update_form_encodes_reference() -> None:
    body = build_update_form(authenticity_token="t+k", image_reference="reg.io/a b:1")
    assert body == (
        "authenticity_token=t%2Bk"
        "&cluster_queue%5Bnamespace_base_image_profile_id%5D="
        "&cluster_queue%5Bnamespace_base_image_ref%5D=reg.io%2Fa+b%3A1"
        "&commit=Save+settings"
    )


def test_set_cookie_values_keeps_repeated_headers() -> None:
    response = _response(
        200,
        cookies=["a=1; expires=Wed, 21 Oct 2026 07:28:00 GMT", "b=2; path=/"],
    )
    assert set_cookie_values(response) == [
        "a=1; expires=Wed, 21 Oct 2026 07:28:00 GMT",
        "b=2; path=/",
    ]
