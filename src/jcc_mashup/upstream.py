"""Thin requests wrapper for talking to the Daxko portal.

The portal signals several outcomes through redirects (a successful login
answers 302), so a 3xx is never raised as an error here. Callers receive an
UpstreamResponse and branch on is_redirect explicitly. Transport failures and
4xx/5xx statuses are raised as UpstreamError/UpstreamStatusError.
"""

import json
from dataclasses import dataclass, field
from http.cookiejar import DefaultCookiePolicy
from typing import Any
from urllib.parse import urljoin

import requests
from requests.utils import dict_from_cookiejar

from src.jcc_mashup.config import ProxyConfig
from src.jcc_mashup.errors import UpstreamError, UpstreamStatusError
from src.jcc_mashup.logging import get_logger

logger = get_logger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
JSON_ACCEPT = "application/json, text/plain, */*"


class _NoCookieStorage(DefaultCookiePolicy):
    """Keeps the shared requests.Session jar empty; cookies travel per request."""

    def set_ok(self, cookie, request):
        return False


@dataclass
class UpstreamResponse:
    """Outcome of one portal request (after any automatic redirect hops)."""

    status_code: int
    url: str
    text: str = ""
    location: str | None = None
    cookies: dict[str, str] = field(default_factory=dict)
    content_type: str = ""

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.text)


class UpstreamClient:
    """Issues portal requests with an explicit cookie set and fixed headers.

    Cookies are passed per request and the requests.Session jar never stores
    any, so concurrent logins and cached sessions cannot bleed into each other.
    """

    def __init__(
        self, config: ProxyConfig, session: requests.Session | None = None
    ) -> None:
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.session.max_redirects = config.login_max_redirects
        self.session.cookies.set_policy(_NoCookieStorage())

    def resolve(self, location: str | None, fallback: str) -> str:
        """Turn a Location header into an absolute portal URL.

        Relative locations are joined against the portal origin; an empty
        location means "try the same URL again".
        """
        if not location:
            return fallback
        return urljoin(self.config.portal_base_url + "/", location)

    def get(
        self,
        url: str,
        *,
        cookies: dict[str, str],
        follow_redirects: bool,
        accept: str = HTML_ACCEPT,
        headers: dict[str, str] | None = None,
    ) -> UpstreamResponse:
        return self.request(
            "GET",
            url,
            cookies=cookies,
            follow_redirects=follow_redirects,
            accept=accept,
            headers=headers,
        )

    def post(
        self,
        url: str,
        *,
        cookies: dict[str, str],
        follow_redirects: bool,
        data: dict[str, str] | None = None,
        json: Any = None,
        accept: str = HTML_ACCEPT,
        headers: dict[str, str] | None = None,
    ) -> UpstreamResponse:
        return self.request(
            "POST",
            url,
            cookies=cookies,
            follow_redirects=follow_redirects,
            data=data,
            json=json,
            accept=accept,
            headers=headers,
        )

    def request(
        self,
        method: str,
        url: str,
        *,
        cookies: dict[str, str],
        follow_redirects: bool,
        data: dict[str, str] | None = None,
        json: Any = None,
        accept: str = HTML_ACCEPT,
        headers: dict[str, str] | None = None,
    ) -> UpstreamResponse:
        """Send one request and normalise the outcome.

        Args:
            method: HTTP method.
            url: Absolute portal URL.
            cookies: Cookie set to present; not mutated.
            follow_redirects: Let requests follow 3xx hops (capped by max_redirects).
            data: Form fields, sent urlencoded.
            json: JSON body.
            accept: Accept header value.
            headers: Extra headers.

        Returns:
            UpstreamResponse with cookies set by every hop merged in order.

        Raises:
            UpstreamError: Network failure, timeout or redirect loop.
            UpstreamStatusError: The portal answered >= 400.
        """
        send_headers = {"User-Agent": self.config.user_agent, "Accept": accept}
        if json is not None:
            send_headers["Content-Type"] = "application/json;charset=utf-8"
        if headers:
            send_headers.update(headers)

        logger.debug(
            "upstream_request",
            method=method,
            url=url,
            cookie_names=sorted(cookies),
            follow_redirects=follow_redirects,
        )
        try:
            resp = self.session.request(
                method,
                url,
                headers=send_headers,
                cookies=dict(cookies),
                data=data,
                json=json,
                allow_redirects=follow_redirects,
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning(
                "upstream_transport_error",
                method=method,
                url=url,
                error=str(e),
                type=type(e).__name__,
            )
            raise UpstreamError(f"Request to portal failed: {e}", details=str(e)) from e

        received: dict[str, str] = {}
        for hop in [*resp.history, resp]:
            received.update(dict_from_cookiejar(hop.cookies))

        result = UpstreamResponse(
            status_code=resp.status_code,
            url=resp.url or url,
            text=resp.text,
            location=resp.headers.get("Location"),
            cookies=received,
            content_type=resp.headers.get("Content-Type", ""),
        )
        logger.debug(
            "upstream_response",
            method=method,
            url=result.url,
            status=result.status_code,
            cookie_names=sorted(received),
        )

        if result.status_code >= 400:
            raise UpstreamStatusError(result.status_code, result.url)
        return result
