"""Error hierarchy for the portal proxy.

Every error that can reach the browser carries the HTTP status it maps to, so
the API layer needs a single exception handler:

    try:
        cookies = auth_flow.login(username, password)
    except ProxyError as e:
        return JSONResponse(e.to_body(), status_code=e.http_status)
"""

from typing import Any


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    http_status = 500

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequestError(ProxyError):
    """Malformed caller input (bad date, unparsable body).

    Reported immediately; no upstream request is attempted.
    """

    http_status = 400


class MissingCredentialsError(InvalidRequestError):
    """Username or password missing from a login request."""

    def __init__(self, message: str = "Username and password required") -> None:
        super().__init__(message)


class UpstreamError(ProxyError):
    """Transport failure or unexpected response from the portal.

    Examples: connection refused, timeout, 5xx, markup the scrapers cannot read.
    Never retried.
    """

    http_status = 500


class UpstreamStatusError(UpstreamError):
    """The portal answered with an error status (>= 400)."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(
            f"Upstream responded with status {status_code}",
            details=f"{status_code} for {url}",
        )
        self.status_code = status_code
        self.url = url


class AuthenticationError(ProxyError):
    """The caller is not (or no longer) authenticated against the portal."""

    http_status = 401


class InvalidCredentialsError(AuthenticationError):
    """The login flow completed but the portal did not issue the auth cookie."""

    def __init__(self, message: str = "Login failed - invalid credentials") -> None:
        super().__init__(message)


class SessionExpiredError(AuthenticationError):
    """No usable cached session: never logged in, aged out, or rejected upstream."""

    def __init__(self, message: str = "Session expired. Please log in again.") -> None:
        super().__init__(message)


class PersistenceError(ProxyError):
    """Session file could not be read or written.

    Logged and absorbed by the session store; the proxy keeps working in memory.
    """
