"""Tests for the requests wrapper used to talk to the portal."""

from __future__ import annotations

import pytest
import requests
from conftest import PORTAL, FakePortal, make_response

from src.jcc_mashup.errors import UpstreamError, UpstreamStatusError
from src.jcc_mashup.upstream import UpstreamClient


def test_redirect_is_returned_not_raised(client: UpstreamClient, portal: FakePortal) -> None:
    portal.queue(make_response(302, location="/online/5198/Home", cookies={"a": "1"}))

    response = client.get(f"{PORTAL}/x", cookies={}, follow_redirects=False)

    assert response.is_redirect
    assert not response.is_success
    assert response.location == "/online/5198/Home"
    assert response.cookies == {"a": "1"}
    assert portal.calls[0].kwargs["allow_redirects"] is False


def test_sends_cookies_headers_and_timeout(
    client: UpstreamClient, portal: FakePortal
) -> None:
    portal.queue(make_response(200))
    client.get(f"{PORTAL}/x", cookies={"k": "v"}, follow_redirects=True)

    call = portal.calls[0]
    assert call.method == "GET"
    assert call.cookies == {"k": "v"}
    assert call.kwargs["allow_redirects"] is True
    assert call.kwargs["timeout"] == client.config.request_timeout_seconds
    assert "Firefox" in call.kwargs["headers"]["User-Agent"]
    assert call.kwargs["headers"]["Accept"].startswith("text/html")


def test_json_post_sets_content_type(client: UpstreamClient, portal: FakePortal) -> None:
    portal.queue(make_response(200, text='{"ok": true}', content_type="application/json"))

    response = client.post(
        f"{PORTAL}/api", cookies={}, json={"a": 1}, follow_redirects=False
    )

    headers = portal.calls[0].kwargs["headers"]
    assert headers["Content-Type"] == "application/json;charset=utf-8"
    assert portal.calls[0].kwargs["json"] == {"a": 1}
    assert response.json() == {"ok": True}
    assert response.content_type == "application/json"


def test_cookies_merged_from_every_hop(client: UpstreamClient, portal: FakePortal) -> None:
    first = make_response(302, location="/b", cookies={"a": "1", "b": "old"})
    portal.queue(make_response(200, cookies={"b": "new"}, history=[first]))

    response = client.get(f"{PORTAL}/a", cookies={}, follow_redirects=True)

    assert response.cookies == {"a": "1", "b": "new"}


def test_error_status_raises(client: UpstreamClient, portal: FakePortal) -> None:
    portal.queue(make_response(401, url=f"{PORTAL}/secure"))

    with pytest.raises(UpstreamStatusError) as exc_info:
        client.get(f"{PORTAL}/secure", cookies={}, follow_redirects=False)

    assert exc_info.value.status_code == 401
    assert exc_info.value.url == f"{PORTAL}/secure"


def test_transport_error_raises(client: UpstreamClient, portal: FakePortal) -> None:
    portal.queue(requests.ConnectionError("connection refused"))

    with pytest.raises(UpstreamError) as exc_info:
        client.get(f"{PORTAL}/x", cookies={}, follow_redirects=False)

    assert "connection refused" in exc_info.value.details
    assert not isinstance(exc_info.value, UpstreamStatusError)


def test_too_many_redirects_is_upstream_error(
    client: UpstreamClient, portal: FakePortal
) -> None:
    portal.queue(requests.TooManyRedirects("Exceeded 5 redirects."))

    with pytest.raises(UpstreamError):
        client.get(f"{PORTAL}/loop", cookies={}, follow_redirects=True)


def test_max_redirects_configured(client: UpstreamClient, portal: FakePortal) -> None:
    assert portal.max_redirects == client.config.login_max_redirects


def test_shared_session_jar_refuses_response_cookies(config) -> None:
    session = requests.Session()
    UpstreamClient(config, session=session)
    assert session.cookies.get_policy().set_ok(None, None) is False


@pytest.mark.parametrize(
    ("location", "expected"),
    [
        ("/online/5198/Next", f"{PORTAL}/online/5198/Next"),
        ("https://other.example.com/x", "https://other.example.com/x"),
        ("", "https://fallback"),
        (None, "https://fallback"),
    ],
)
def test_resolve_location(client: UpstreamClient, location, expected) -> None:
    assert client.resolve(location, "https://fallback") == expected
