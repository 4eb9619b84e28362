"""Daxko portal login flow.

AuthFlow replays the cookie/redirect sequence a browser goes through when
signing in to the operations portal and returns the resulting cookie set:

  1. seed the Google Analytics cookies the portal expects to see
  2. GET find_account, hopping redirects by hand (at most 3 attempts)
  3. GET log_in?user_name=..., redirects followed, scrape the anti-forgery token
  4. POST the login form; a 302 is the success answer
  5. succeed only if the auth cookie (.online_auth) was issued
"""

import random
import time
from urllib.parse import quote

from tenacity import retry, retry_if_result, stop_after_attempt

from src.jcc_mashup.config import ProxyConfig
from src.jcc_mashup.errors import (
    InvalidCredentialsError,
    MissingCredentialsError,
    UpstreamError,
)
from src.jcc_mashup.logging import get_logger
from src.jcc_mashup.pages.login import VERIFICATION_FIELD, extract_verification_token
from src.jcc_mashup.upstream import UpstreamClient, UpstreamResponse

logger = get_logger(__name__)


def tracking_cookies(now: int | None = None) -> dict[str, str]:
    """Synthesize the analytics cookies the portal requires before login.

    Args:
        now: Epoch seconds to stamp the cookies with (defaults to current time).

    Returns:
        Fresh __utm* cookie values plus an empty __oauth_admin.
    """
    now = int(time.time()) if now is None else now
    visitor = random.randrange(1_000_000_000)
    return {
        "__utma": f"1.{visitor}.{now}.{now}.{now}.1",
        "__utmb": f"1.3.10.{now}",
        "__utmc": "1",
        "__utmz": f"1.{now}.1.1.utmcsr=(direct)|utmccn=(direct)|utmcmd=(none)",
        "__utmt": "1",
        "__oauth_admin": "",
    }


class AuthFlow:
    """Exchanges a username/password for portal authentication cookies.

    Each call starts from fresh tracking cookies and shares nothing with other
    calls, so repeating a login is safe.
    """

    def __init__(self, config: ProxyConfig, client: UpstreamClient) -> None:
        self.config = config
        self.client = client

    @property
    def login_url(self) -> str:
        return f"{self.config.online_base_url}/Security/login.mvc/log_in"

    @property
    def _return_url(self) -> str:
        return quote(self.config.homepage_path, safe="")

    @property
    def find_account_url(self) -> str:
        return (
            f"{self.config.online_base_url}/Security/login.mvc/find_account"
            f"?return_url={self._return_url}"
        )

    def login_page_url(self, username: str) -> str:
        return (
            f"{self.login_url}?user_name={quote(username, safe='')}"
            f"&return_url={self._return_url}&oauth="
        )

    def login(self, username: str, password: str) -> dict[str, str]:
        """Run the full login sequence.

        Args:
            username: Portal user name (or member email).
            password: Portal password.

        Returns:
            Merged cookie set containing the auth cookie.

        Raises:
            MissingCredentialsError: Username or password empty; nothing was sent.
            InvalidCredentialsError: The portal did not issue the auth cookie.
            UpstreamError: Any transport failure or unexpected status.
        """
        if not username or not password:
            raise MissingCredentialsError()

        logger.info("login_started", username=username)
        cookies = tracking_cookies()

        try:
            self._find_account(cookies)
            login_page_url = self.login_page_url(username)
            token = self._open_login_page(login_page_url, cookies)
            response = self._submit_login(
                username, password, token or "", login_page_url, cookies
            )
        except UpstreamError as e:
            logger.error("login_error", username=username, error=e.details or e.message)
            raise UpstreamError("Login failed", details=e.details or e.message) from e

        if self.config.auth_cookie_name not in cookies:
            logger.warning(
                "login_rejected",
                username=username,
                status=response.status_code,
                cookie_names=sorted(cookies),
            )
            raise InvalidCredentialsError()

        logger.info(
            "login_succeeded",
            username=username,
            status=response.status_code,
            cookie_names=sorted(cookies),
        )
        return cookies

    def _find_account(self, cookies: dict[str, str]) -> UpstreamResponse:
        """Walk the find_account redirect chain, collecting cookies at each hop.

        Stops at the first 2xx. Running out of attempts while still being
        redirected is not an error; the flow goes on with what it collected.
        """
        state = {"url": self.find_account_url, "attempt": 0}

        @retry(
            stop=stop_after_attempt(self.config.find_account_attempts),
            retry=retry_if_result(lambda r: r.is_redirect),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        def hop() -> UpstreamResponse:
            state["attempt"] += 1
            response = self.client.get(
                state["url"], cookies=cookies, follow_redirects=False
            )
            cookies.update(response.cookies)
            if response.is_redirect:
                state["url"] = self.client.resolve(
                    response.location, self.find_account_url
                )
                logger.debug(
                    "find_account_redirect",
                    attempt=state["attempt"],
                    location=state["url"],
                    received=sorted(response.cookies),
                )
            return response

        response = hop()
        logger.info(
            "find_account_done",
            status=response.status_code,
            attempts=state["attempt"],
            cookie_names=sorted(cookies),
        )
        return response

    def _open_login_page(self, url: str, cookies: dict[str, str]) -> str | None:
        """Load the login form and return its anti-forgery token, if any."""
        response = self.client.get(url, cookies=cookies, follow_redirects=True)
        cookies.update(response.cookies)

        token = extract_verification_token(response.text)
        logger.info(
            "login_page_loaded",
            status=response.status_code,
            verification_token=bool(token),
            received=sorted(response.cookies),
        )
        return token

    def _submit_login(
        self,
        username: str,
        password: str,
        token: str,
        referer: str,
        cookies: dict[str, str],
    ) -> UpstreamResponse:
        form = {
            VERIFICATION_FIELD: token,
            "user_name": username,
            "password": password,
            "keep_me_logged_in": "false",
            "return_url": self.config.homepage_path,
            "barcode": "",
            "oauth": "",
        }
        response = self.client.post(
            self.login_url,
            cookies=cookies,
            data=form,
            follow_redirects=False,
            headers={"Referer": referer},
        )
        cookies.update(response.cookies)

        if response.is_redirect:
            logger.info("login_redirected", location=response.location)
        else:
            logger.info("login_form_answered", status=response.status_code)
        return response
