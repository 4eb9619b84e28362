"""Shared fixtures: a scripted stand-in for the Daxko portal and test config."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import requests
from requests.cookies import cookiejar_from_dict
from requests.structures import CaseInsensitiveDict

from src.jcc_mashup.config import ProxyConfig
from src.jcc_mashup.session import SessionStore
from src.jcc_mashup.upstream import UpstreamClient

FIXTURES = Path(__file__).parent / "fixtures"
PORTAL = "https://operations.daxko.com"


def fixture_text(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def make_response(
    status: int = 200,
    *,
    text: str = "",
    cookies: dict[str, str] | None = None,
    location: str | None = None,
    content_type: str = "text/html; charset=utf-8",
    url: str = f"{PORTAL}/",
    history: list[requests.Response] | None = None,
) -> requests.Response:
    """Build a requests.Response the way the HTTP adapter would hand it back."""
    resp = requests.Response()
    resp.status_code = status
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = url
    resp.headers = CaseInsensitiveDict({"Content-Type": content_type})
    if location is not None:
        resp.headers["Location"] = location
    resp.cookies = cookiejar_from_dict(cookies or {})
    resp.history = history or []
    return resp


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: dict[str, Any]

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self.kwargs.get("cookies") or {})


class FakePortal(requests.Session):
    """requests.Session that answers from a script instead of the network.

    Each queued item is a Response, an exception to raise, or a callable
    taking (method, url, kwargs) and returning either.
    """

    def __init__(self) -> None:
        super().__init__()
        self.script: list[Any] = []
        self.calls: list[RecordedCall] = []

    def queue(self, *items: requests.Response | Exception | Callable) -> FakePortal:
        self.script.extend(items)
        return self

    def request(self, method, url, **kwargs):  # type: ignore[override]
        self.calls.append(RecordedCall(method, url, kwargs))
        if not self.script:
            raise AssertionError(f"unexpected portal request: {method} {url}")
        item = self.script.pop(0)
        if callable(item) and not isinstance(item, requests.Response):
            item = item(method, url, kwargs)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def config(tmp_path: Path) -> ProxyConfig:
    return ProxyConfig(
        _env_file=None,
        session_file=str(tmp_path / "sessions.json"),
        static_dir="",
        session_flush_interval_seconds=3600,
    )


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def client(config: ProxyConfig, portal: FakePortal) -> UpstreamClient:
    return UpstreamClient(config, session=portal)


@pytest.fixture
def store(config: ProxyConfig) -> SessionStore:
    return SessionStore(config.session_file, config.session_max_age_ms)


@pytest.fixture
def auth_cookies() -> dict[str, str]:
    return {
        "__RequestVerificationToken": "cookie-token",
        "ASP.NET_SessionId": "abc123",
        ".online_auth": "AUTHVALUE",
    }


def login_script(
    *,
    find_account: list[requests.Response] | None = None,
    login_page: requests.Response | None = None,
    login_post: requests.Response | None = None,
) -> list[requests.Response]:
    """Default portal answers for one successful login, overridable per step."""
    if find_account is None:
        find_account = [make_response(200, cookies={"__RequestVerificationToken": "cookie-token"})]
    if login_page is None:
        login_page = make_response(
            200, text=fixture_text("login_page.html"), cookies={"ASP.NET_SessionId": "abc123"}
        )
    if login_post is None:
        login_post = make_response(
            302,
            location="/online/5198/Redirect/Homepage.mvc",
            cookies={".online_auth": "AUTHVALUE"},
        )
    return [*find_account, login_page, login_post]
